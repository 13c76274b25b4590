#!/usr/bin/env python3

# bootstrap.py - RackHD machine driver node bootstrap
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

import shlex
import socket
import paramiko

from celery.utils.log import get_task_logger

from rackhddriver.lib.dataclasses import ResolvedNode
from rackhddriver.lib.ssh import generate_ssh_key
from rackhddriver.lib.exceptions import (
    NodeLookupError,
    NoAddressesError,
    UnreachableError,
    KeyGenerationError,
    RemoteSetupError,
)


logger = get_task_logger(__name__)


DEFAULT_PROBE_TIMEOUT = 25


#
# Bootstrap steps
#
def resolve_addresses(inventory, node_id):
    """
    Return every IP address RackHD knows for node_id, in the order found
    """
    try:
        records = inventory.lookup(node_id)
    except Exception as e:
        raise NodeLookupError(node_id, e) from e

    addresses = list()
    for record in records:
        if record.ip_address is None:
            continue
        logger.debug(f"Found IP Address for Node ID {node_id}: {record.ip_address}")
        addresses.append(record.ip_address)

    return addresses


def check_port(ip_address, port, timeout=DEFAULT_PROBE_TIMEOUT):
    """
    Return True if a TCP connection to ip_address:port can be opened
    """
    try:
        conn = socket.create_connection((ip_address, port), timeout=timeout)
    except OSError as e:
        logger.debug(f"Connection failed on: {ip_address}:{port} ({e})")
        return False

    conn.close()
    return True


def probe_addresses(addresses, port, timeout=DEFAULT_PROBE_TIMEOUT):
    """
    Return the first address accepting connections on port, or None
    """
    for ip_address in addresses:
        logger.debug(f"Testing connection to: {ip_address}:{port}")
        if check_port(ip_address, port, timeout=timeout):
            logger.info(f"Connection succeeded on: {ip_address}:{port}")
            return ip_address

    return None


def create_ssh_key(key_path):
    logger.info("Creating SSH key...")
    try:
        return generate_ssh_key(key_path)
    except (OSError, paramiko.SSHException) as e:
        raise KeyGenerationError(key_path, e) from e


def authorized_keys_commands(public_key):
    """
    The remote commands installing public_key as the sole authorized key, in order
    """
    return [
        ("create-ssh-dir", "mkdir -p ~/.ssh"),
        (
            "write-authorized-keys",
            f"echo {shlex.quote(public_key)} > ~/.ssh/authorized_keys",
        ),
        ("secure-ssh-dir", "chmod 700 ~/.ssh"),
        ("secure-authorized-keys", "chmod 600 ~/.ssh/authorized_keys"),
    ]


def install_public_key(shell, ip_address, port, username, password, public_key):
    """
    Install public_key for username on the node, using password authentication

    Steps already applied are not rolled back when a later one fails.
    """
    for step, command in authorized_keys_commands(public_key):
        logger.debug(f"Running remote setup step '{step}' on {ip_address}")
        try:
            shell.run(ip_address, port, username, password, command)
        except Exception as e:
            logger.debug(f"Remote setup step '{step}' failed: {e}")
            raise RemoteSetupError(step, command, e) from e


#
# Entrypoint
#
def bootstrap(config, inventory, shell, probe_timeout=DEFAULT_PROBE_TIMEOUT):
    """
    Resolve the node named by config.node_id to a reachable IP and install a fresh SSH key on it

    Every failure aborts the whole sequence; nothing is retried here.
    """
    addresses = resolve_addresses(inventory, config.node_id)
    if len(addresses) < 1:
        raise NoAddressesError(config.node_id)

    ip_address = probe_addresses(addresses, config.ssh_port, timeout=probe_timeout)
    if ip_address is None:
        raise UnreachableError(config.node_id, addresses, config.ssh_port)

    key_pair = create_ssh_key(config.ssh_key_path)

    logger.info(f"Copy public SSH key to {config.node_id} [{ip_address}]")
    install_public_key(
        shell,
        ip_address,
        config.ssh_port,
        config.ssh_user,
        config.ssh_password,
        key_pair.public_key,
    )

    return ResolvedNode(ip_address, config.ssh_port, config.ssh_user, key_pair)
