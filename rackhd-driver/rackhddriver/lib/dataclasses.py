#!/usr/bin/env python3

# dataclasses.py - RackHD machine driver dataclasses
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

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class MachineState(Enum):
    """
    The power state of a machine as reported to the host tool
    """

    NONE = ""
    RUNNING = "Running"
    PAUSED = "Paused"
    SAVED = "Saved"
    STOPPED = "Stopped"
    STOPPING = "Stopping"
    STARTING = "Starting"
    ERROR = "Error"
    TIMEOUT = "Timeout"


@dataclass(frozen=True)
class DriverFlag:
    """
    A create-time option understood by the driver
    """

    name: str
    env_var: str
    usage: str
    default: Any = None
    value_type: Any = str


@dataclass(frozen=True)
class DriverConfig:
    """
    The settings of a driver instance; fixed once the driver is configured
    """

    endpoint: str
    transport: str
    node_id: str
    ssh_user: str
    ssh_password: str
    ssh_port: int
    ssh_key_path: str


@dataclass
class AddressRecord:
    """
    An entry returned by the RackHD lookups API
    """

    id: Optional[str]
    node: Optional[str]
    mac_address: Optional[str]
    ip_address: Optional[str]

    @classmethod
    def from_dict(cls, data):
        ip_address = data.get("ipAddress")
        if not isinstance(ip_address, str):
            ip_address = None
        return cls(
            data.get("id"),
            data.get("node"),
            data.get("macAddress"),
            ip_address,
        )


@dataclass
class SSHKeyPair:
    """
    A locally generated SSH keypair; only the public half ever leaves the host
    """

    private_key_path: str
    public_key_path: str
    public_key: str


@dataclass
class ResolvedNode:
    """
    The outcome of a successful node bootstrap
    """

    ip_address: str
    ssh_port: int
    ssh_user: str
    key_pair: SSHKeyPair


@dataclass
class Machine:
    """
    An instance of a Machine managed by the daemon
    """

    id: int
    name: str
    state: str
    node_id: str
    endpoint: str
    transport: str
    ssh_user: str
    ssh_password: str
    ssh_port: int
    ip_address: Optional[str]
