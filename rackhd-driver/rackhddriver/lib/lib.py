#!/usr/bin/env python3

# lib.py - RackHD machine driver worker libraries
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
import re
import shutil

import rackhddriver.lib.db as db
import rackhddriver.lib.notifications as notifications

from rackhddriver.lib.driver import Driver, get_create_flags
from rackhddriver.lib.exceptions import (
    IPAddressNotSetError,
    MachineExistsError,
    MachineNotFoundError,
    RackHDDriverError,
)

from celery.utils.log import get_task_logger


logger = get_task_logger(__name__)


MACHINE_ACTIONS = ["start", "stop", "restart", "kill"]

# Machine names become directory names under the store path
VALID_MACHINE_NAME = r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$"


#
# Helper functions
#
def default_flags(config):
    """
    The driver options configured for the daemon as a whole
    """
    return {
        "rackhd-endpoint": config["driver_endpoint"],
        "rackhd-transport": config["driver_transport"],
        "rackhd-ssh-user": config["driver_ssh_user"],
        "rackhd-ssh-password": config["driver_ssh_password"],
        "rackhd-ssh-port": config["driver_ssh_port"],
    }


def request_flags(config, data):
    flags = default_flags(config)
    for flag in get_create_flags():
        if data.get(flag.name) is not None:
            flags[flag.name] = data[flag.name]
    return flags


def machine_flags(machine):
    return {
        "rackhd-endpoint": machine.endpoint,
        "rackhd-node-id": machine.node_id,
        "rackhd-transport": machine.transport,
        "rackhd-ssh-user": machine.ssh_user,
        "rackhd-ssh-password": machine.ssh_password,
        "rackhd-ssh-port": machine.ssh_port,
    }


def new_driver(config, name, flags):
    driver = Driver(
        name, config["store_path"], probe_timeout=config["driver_probe_timeout"]
    )
    driver.set_config_from_flags(flags)
    return driver


def load_driver(config, machine):
    driver = new_driver(config, machine.name, machine_flags(machine))
    if machine.ip_address:
        driver.set_ip_address(machine.ip_address)
    return driver


def get_machine(config, name):
    machine = db.get_machine(config, name=name)
    if machine is None:
        raise MachineNotFoundError(name)
    return machine


#
# Worker functions
#
def register_machine(config, data):
    """
    Validate a creation request and record the new machine as pending
    """
    name = data.get("name")
    if not name:
        raise RackHDDriverError("A machine name is required")
    if not re.match(VALID_MACHINE_NAME, name):
        raise RackHDDriverError(f"Invalid machine name '{name}'")
    if db.get_machine(config, name=name) is not None:
        raise MachineExistsError(name)

    driver = new_driver(config, name, request_flags(config, data))
    return db.add_machine(config, name, "pending", driver.config)


def create_machine(config, name):
    """
    Bootstrap a registered machine (Celery root task)
    """
    machine = get_machine(config, name)
    if machine.ip_address:
        raise RackHDDriverError(f"Machine {name} was already created at {machine.ip_address}")

    logger.info(f"Creating machine {name} from Node ID {machine.node_id}")
    db.update_machine_state(config, name, "provisioning")
    notifications.send_webhook(
        config, "begin", f"Machine {name}: Starting bootstrap of Node ID {machine.node_id}", machine=name
    )

    driver = load_driver(config, machine)
    try:
        driver.pre_create_check()
        node = driver.create()
    except RackHDDriverError as e:
        logger.error(f"Machine {name}: bootstrap failed: {e}")
        db.update_machine_state(config, name, "error")
        notifications.send_webhook(
            config, "failure", f"Machine {name}: Failed bootstrap with error '{e}'", machine=name
        )
        raise

    db.update_machine_address(config, name, node.ip_address)
    machine = db.update_machine_state(config, name, "created")
    logger.info(f"Machine {name} created at {node.ip_address}")
    notifications.send_webhook(
        config, "success", f"Machine {name}: Completed bootstrap at {node.ip_address}", machine=name
    )
    return machine


def machine_status(config, name):
    machine = get_machine(config, name)
    driver = load_driver(config, machine)

    try:
        url = driver.get_url()
    except IPAddressNotSetError:
        url = None

    return {
        "name": machine.name,
        "state": machine.state,
        "power_state": driver.get_state().value,
        "node_id": machine.node_id,
        "endpoint": machine.endpoint,
        "transport": machine.transport,
        "ip_address": machine.ip_address,
        "url": url,
        "ssh_user": driver.get_ssh_username(),
        "ssh_port": driver.get_ssh_port(),
        "ssh_key_path": driver.get_ssh_key_path(),
    }


def machine_action(config, name, action):
    if action not in MACHINE_ACTIONS:
        raise RackHDDriverError(f"Unknown machine action '{action}'")

    machine = get_machine(config, name)
    driver = load_driver(config, machine)

    logger.info(f"Running {action} on machine {name}")
    getattr(driver, action)()


def remove_machine(config, name):
    machine = get_machine(config, name)
    driver = load_driver(config, machine)

    logger.info(f"Removing machine {name}")
    driver.remove()
    db.delete_machine(config, name)

    machine_dir = os.path.dirname(driver.get_ssh_key_path())
    if os.path.isdir(machine_dir):
        shutil.rmtree(machine_dir)

    notifications.send_webhook(config, "info", f"Machine {name}: Removed", machine=name)
