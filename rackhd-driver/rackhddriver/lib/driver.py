#!/usr/bin/env python3

# driver.py - RackHD machine driver
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

import os

from celery.utils.log import get_task_logger

import rackhddriver.lib.bootstrap as bootstrap

from rackhddriver.lib.dataclasses import DriverConfig, DriverFlag, MachineState
from rackhddriver.lib.exceptions import (
    ConfigurationError,
    EndpointError,
    IPAddressNotSetError,
    RackHDDriverError,
)
from rackhddriver.lib.rackhd import RackHDSession
from rackhddriver.lib.ssh import SSHExecutor, public_key_path


logger = get_task_logger(__name__)


DRIVER_NAME = "rackhd"

DEFAULT_ENDPOINT = "localhost:8080"
DEFAULT_TRANSPORT = "http"
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PASSWORD = "root"
DEFAULT_SSH_PORT = 22

# An SSH port of 443 means the endpoint is reached over TLS as well
SECURE_SSH_PORT = 443
VALID_TRANSPORTS = ["http", "https"]

DOCKER_PORT = 2376


def get_create_flags():
    """
    Describe the options accepted by Driver.set_config_from_flags
    """
    return [
        DriverFlag(
            name="rackhd-endpoint",
            env_var="RACKHD_ENDPOINT",
            usage="RackHD Endpoint for API traffic",
            default=DEFAULT_ENDPOINT,
        ),
        DriverFlag(
            name="rackhd-node-id",
            env_var="RACKHD_NODE_ID",
            usage="REQUIRED: Specify Node ID, MAC Address or IP Address",
        ),
        DriverFlag(
            name="rackhd-transport",
            env_var="RACKHD_TRANSPORT",
            usage="RackHD Endpoint Transport. Specify http or https. HTTP is default",
            default=DEFAULT_TRANSPORT,
        ),
        DriverFlag(
            name="rackhd-ssh-user",
            env_var="RACKHD_SSH_USER",
            usage="ssh user (default:root)",
            default=DEFAULT_SSH_USER,
        ),
        DriverFlag(
            name="rackhd-ssh-password",
            env_var="RACKHD_SSH_PASSWORD",
            usage="ssh password (default:root)",
            default=DEFAULT_SSH_PASSWORD,
        ),
        DriverFlag(
            name="rackhd-ssh-port",
            env_var="RACKHD_SSH_PORT",
            usage="ssh port (default:22)",
            default=DEFAULT_SSH_PORT,
            value_type=int,
        ),
    ]


def flag_value(flags, flag):
    """
    Resolve a flag from the given options, then its environment variable, then its default
    """
    value = flags.get(flag.name)
    if value is None or value == "":
        value = os.environ.get(flag.env_var)
    if value is None or value == "":
        value = flag.default
    if value is None:
        return None

    try:
        return flag.value_type(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"option --{flag.name} has invalid value '{value}'")


class Driver:
    """
    Drives a single RackHD-managed node through its lifecycle

    The inventory client and remote shell executor may be injected; by default a
    RackHDSession is built when the driver is configured and SSH runs through paramiko.
    """

    def __init__(
        self,
        machine_name,
        store_path,
        inventory=None,
        shell=None,
        probe_timeout=bootstrap.DEFAULT_PROBE_TIMEOUT,
    ):
        self.machine_name = machine_name
        self.store_path = store_path
        self.inventory = inventory
        self.shell = shell if shell is not None else SSHExecutor()
        self.probe_timeout = probe_timeout

        self.config = None
        self.ip_address = None
        self.ssh_key = None

    def driver_name(self):
        return DRIVER_NAME

    def get_machine_name(self):
        return self.machine_name

    def get_create_flags(self):
        return get_create_flags()

    def set_config_from_flags(self, flags):
        values = dict()
        for flag in get_create_flags():
            values[flag.name] = flag_value(flags, flag)

        if not values["rackhd-node-id"]:
            raise ConfigurationError("rackhd driver requires the --rackhd-node-id option")

        ssh_port = values["rackhd-ssh-port"]
        if ssh_port == SECURE_SSH_PORT:
            transport = "https"
        else:
            transport = values["rackhd-transport"]
        if transport not in VALID_TRANSPORTS:
            raise ConfigurationError(
                f"option --rackhd-transport must be one of {', '.join(VALID_TRANSPORTS)}, not '{transport}'"
            )

        self.config = DriverConfig(
            endpoint=values["rackhd-endpoint"],
            transport=transport,
            node_id=values["rackhd-node-id"],
            ssh_user=values["rackhd-ssh-user"],
            ssh_password=values["rackhd-ssh-password"],
            ssh_port=ssh_port,
            ssh_key_path=self.get_ssh_key_path(),
        )

        if self.inventory is None:
            logger.debug("Getting RackHD Client")
            self.inventory = RackHDSession(self.config.endpoint, self.config.transport)

    def _require_config(self):
        if self.config is None:
            raise ConfigurationError("driver has not been configured")
        return self.config

    def pre_create_check(self):
        config = self._require_config()
        logger.info(f"Testing accessibility of endpoint: {config.endpoint}")
        try:
            self.inventory.get_config()
        except Exception as e:
            raise EndpointError(config.endpoint, e) from e
        logger.info(f"Test Passed. {config.endpoint} is accessible and installation will begin")

    def create(self):
        """
        Bootstrap the node and remember its address

        Raises a BootstrapError subclass on failure; the driver is left unresolved.
        """
        config = self._require_config()
        if self.ip_address is not None:
            raise RackHDDriverError(
                f"{self.machine_name} was already created at {self.ip_address}"
            )
        node = bootstrap.bootstrap(
            config, self.inventory, self.shell, probe_timeout=self.probe_timeout
        )
        self.set_ip_address(node.ip_address)
        self.ssh_key = node.key_pair.public_key.strip()
        return node

    #
    # Addressing
    #
    def set_ip_address(self, ip_address):
        if self.ip_address is not None:
            raise RackHDDriverError(
                f"IP address of {self.machine_name} is already set to {self.ip_address}"
            )
        self.ip_address = ip_address

    def get_ip(self):
        if not self.ip_address:
            raise IPAddressNotSetError()
        return self.ip_address

    def get_url(self):
        return f"tcp://{self.get_ip()}:{DOCKER_PORT}"

    def get_ssh_hostname(self):
        return self.get_ip()

    def get_ssh_username(self):
        if self.config is None or not self.config.ssh_user:
            return DEFAULT_SSH_USER
        return self.config.ssh_user

    def get_ssh_port(self):
        if self.config is None:
            return DEFAULT_SSH_PORT
        return self.config.ssh_port

    def get_ssh_key_path(self):
        return os.path.join(self.store_path, "machines", self.machine_name, "id_rsa")

    def get_public_ssh_key_path(self):
        return public_key_path(self.get_ssh_key_path())

    #
    # Power state; no out-of-band control is available yet
    #
    def get_state(self):
        return MachineState.RUNNING

    def _unsupported(self, action):
        logger.warning(
            f"{action} of {self.machine_name} is not supported by the {DRIVER_NAME} driver yet; nothing done"
        )

    def start(self):
        self._unsupported("Start")

    def stop(self):
        self._unsupported("Stop")

    def restart(self):
        self._unsupported("Restart")

    def kill(self):
        self._unsupported("Kill")

    def remove(self):
        self._unsupported("Remove")
