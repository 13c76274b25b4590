#!/usr/bin/env python3

# exceptions.py - RackHD machine driver exceptions
# Part of the RackHD machine driver
#
#    Copyright (C) 2018-2021 Joshua M. Boniface <joshua@boniface.me>
#
#    This program is free software: you can redistribute it and/or modify
#    it under the terms of the GNU General Public License as published by
#    the Free Software Foundation, version 3.
#
#    This program is distributed in the hope that it will be useful,
#    but WITHOUT ANY WARRANTY; without even the implied warranty of
#    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
#    GNU General Public License for more details.
#
#    You should have received a copy of the GNU General Public License
#    along with this program.  If not, see <https://www.gnu.org/licenses/>.
#
###############################################################################


class RackHDDriverError(Exception):
    """
    Base class of all driver errors
    """

    def __init__(self, msg=None):
        self.msg = msg if msg is not None else "Generic driver failure"

    def __str__(self):
        return str(self.msg)


#
# Driver setup errors
#
class ConfigurationError(RackHDDriverError):
    """
    An exception when the driver options are missing or invalid
    """

    def __init__(self, error=None):
        self.msg = f"Invalid driver configuration: {error}"


class EndpointError(RackHDDriverError):
    """
    An exception when the RackHD endpoint cannot be reached
    """

    def __init__(self, endpoint, error=None):
        self.endpoint = endpoint
        self.msg = f"The Endpoint {endpoint} is not accessible. Error: {error}"


class IPAddressNotSetError(RackHDDriverError):
    def __init__(self):
        self.msg = "IP address is not set"


class RackHDException(RackHDDriverError):
    """
    An exception when the RackHD API answers with an error status
    """

    def __init__(self, error=None, response=None):
        if error is not None:
            self.short_message = error
        else:
            self.short_message = "Generic RackHD API failure"

        if response is not None:
            try:
                rinfo = response.json()
            except ValueError:
                rinfo = None
            if isinstance(rinfo, dict) and rinfo.get("message") is not None:
                self.full_message = rinfo["message"]
            else:
                self.full_message = response.text
            self.status_code = response.status_code
            self.msg = f"{self.short_message}: {self.full_message} (HTTP Code: {self.status_code})"
        else:
            self.full_message = ""
            self.status_code = None
            self.msg = f"{self.short_message}"


class RemoteCommandError(RackHDDriverError):
    """
    An exception when a command run over SSH exits non-zero
    """

    def __init__(self, command, exit_status, stderr=""):
        self.command = command
        self.exit_status = exit_status
        self.stderr = stderr
        self.msg = f"Command '{command}' exited with status {exit_status}: {stderr.strip()}"


#
# Bootstrap errors
#
class BootstrapError(RackHDDriverError):
    """
    Base class of the errors that abort a node bootstrap
    """

    step = None


class NodeLookupError(BootstrapError):
    step = "lookup"

    def __init__(self, node_id, error=None):
        self.node_id = node_id
        self.msg = f"Lookup of Node ID {node_id} failed. Error: {error}"


class NoAddressesError(BootstrapError):
    step = "lookup"

    def __init__(self, node_id):
        self.node_id = node_id
        self.msg = f"No IP addresses are associated with the Node ID {node_id}"


class UnreachableError(BootstrapError):
    step = "probe"

    def __init__(self, node_id, candidates, port):
        self.node_id = node_id
        self.candidates = list(candidates)
        self.port = port
        self.msg = (
            f"No IP addresses are accessible on this network to the Node ID {node_id} "
            f"(tried port {port} on {', '.join(self.candidates)})"
        )


class KeyGenerationError(BootstrapError):
    step = "keygen"

    def __init__(self, key_path, error=None):
        self.key_path = key_path
        self.msg = f"Failed to create SSH key {key_path}. Error: {error}"


class RemoteSetupError(BootstrapError):
    """
    An exception when one of the remote authorized_keys setup commands fails
    """

    def __init__(self, step, command, cause=None):
        self.step = step
        self.command = command
        self.cause = cause
        self.msg = f"Remote setup step '{step}' failed running '{command}': {cause}"


#
# Machine store errors
#
class MachineNotFoundError(RackHDDriverError):
    def __init__(self, name):
        self.name = name
        self.msg = f"Machine {name} does not exist"


class MachineExistsError(RackHDDriverError):
    def __init__(self, name):
        self.name = name
        self.msg = f"Machine {name} already exists"
