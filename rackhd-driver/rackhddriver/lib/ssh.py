#!/usr/bin/env python3

# ssh.py - RackHD machine driver SSH libraries
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
import paramiko
import contextlib

from celery.utils.log import get_task_logger

from rackhddriver.lib.dataclasses import SSHKeyPair
from rackhddriver.lib.exceptions import RemoteCommandError


logger = get_task_logger(__name__)


# Same size docker-machine uses for its generated keys
DEFAULT_KEY_BITS = 2048


@contextlib.contextmanager
def run_paramiko(address, port, username, password):
    """
    Open a password-authenticated SSH connection; it is closed on exit even on error
    """
    ssh_client = paramiko.SSHClient()
    ssh_client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        ssh_client.connect(
            hostname=address,
            port=port,
            username=username,
            password=password,
            look_for_keys=False,
            allow_agent=False,
        )
        yield ssh_client
    finally:
        ssh_client.close()


def execute_ssh_command(address, port, username, password, command):
    """
    Run a single command over SSH and return its standard output
    """
    logger.debug(f"Executing SSH command on {address}:{port}: {command}")

    with run_paramiko(address, port, username, password) as c:
        stdin, stdout, stderr = c.exec_command(command)
        output = stdout.read().decode("utf-8", errors="replace")
        errors = stderr.read().decode("utf-8", errors="replace")
        exit_status = stdout.channel.recv_exit_status()

    if exit_status != 0:
        logger.debug(f"Failed to run: {command} (status {exit_status})")
        raise RemoteCommandError(command, exit_status, errors)

    logger.debug(f"Stdout from SSH command: {output}")
    return output


class SSHExecutor:
    """
    Remote shell executor backed by paramiko
    """

    def run(self, address, port, username, password, command):
        return execute_ssh_command(address, port, username, password, command)


def public_key_path(private_key_path):
    return f"{private_key_path}.pub"


def generate_ssh_key(private_key_path, bits=DEFAULT_KEY_BITS):
    """
    Generate a new RSA keypair at private_key_path and read back the public half
    """
    key_dir = os.path.dirname(private_key_path)
    if key_dir:
        os.makedirs(key_dir, exist_ok=True)

    key = paramiko.RSAKey.generate(bits=bits)
    key.write_private_key_file(private_key_path)
    os.chmod(private_key_path, 0o600)

    pub_path = public_key_path(private_key_path)
    with open(pub_path, "w") as pfh:
        pfh.write(f"{key.get_name()} {key.get_base64()}\n")

    with open(pub_path, "r") as pfh:
        public_key = pfh.read()

    return SSHKeyPair(private_key_path, pub_path, public_key.strip())
