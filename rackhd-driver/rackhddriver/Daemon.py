#!/usr/bin/env python3

# Daemon.py - RackHD machine driver HTTP API daemon
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
import yaml
import signal
import logging

from sys import argv

import rackhddriver.lib.notifications as notifications
import rackhddriver.lib.db as db

from rackhddriver.lib.driver import (
    DEFAULT_ENDPOINT,
    DEFAULT_TRANSPORT,
    DEFAULT_SSH_USER,
    DEFAULT_SSH_PASSWORD,
    DEFAULT_SSH_PORT,
)
from rackhddriver.lib.bootstrap import DEFAULT_PROBE_TIMEOUT

# Daemon version
version = "0.1"

# API version
API_VERSION = 1.0


##########################################################
# Exceptions
##########################################################


class MalformedConfigurationError(Exception):
    """
    An exception when parsing the RackHD driver daemon configuration file
    """

    def __init__(self, error=None):
        self.msg = f"ERROR: Configuration file is malformed: {error}"

    def __str__(self):
        return str(self.msg)


##########################################################
# Helper Functions
##########################################################


TRUE_STRINGS = ["y", "yes", "t", "true", "on", "1"]


def strtobool(stringv):
    if stringv is None:
        return False
    if isinstance(stringv, bool):
        return bool(stringv)
    return str(stringv).strip().lower() in TRUE_STRINGS


##########################################################
# Configuration Parsing
##########################################################


def get_config_path():
    try:
        return os.environ["RACKHD_DRIVER_CONFIG_FILE"]
    except KeyError:
        print('ERROR: The "RACKHD_DRIVER_CONFIG_FILE" environment variable must be set.')
        os._exit(1)


def read_config(config_file=None):
    if config_file is None:
        config_file = get_config_path()

    print(f"Loading configuration from file '{config_file}'")

    # Load the YAML config file
    with open(config_file, "r") as cfgfile:
        try:
            o_config = yaml.load(cfgfile, Loader=yaml.SafeLoader)
        except Exception as e:
            raise MalformedConfigurationError(f"Failed to parse configuration file: {e}")

    # Create the configuration dictionary
    config = dict()

    # Get the base configuration
    try:
        o_base = o_config["rackhd"]
    except (KeyError, TypeError) as k:
        raise MalformedConfigurationError(f"Missing top-level category {k}")

    config["debug"] = strtobool(o_base.get("debug", False))

    # Get the first-level categories
    try:
        o_database = o_base["database"]
        o_store = o_base["store"]
        o_api = o_base["api"]
        o_queue = o_base["queue"]
    except KeyError as k:
        raise MalformedConfigurationError(f"Missing first-level category {k}")

    # Get the Database configuration
    for key in ["path"]:
        try:
            config[f"database_{key}"] = o_database[key]
        except Exception:
            raise MalformedConfigurationError(
                f"Missing second-level key '{key}' under 'database'"
            )

    # Get the machine store configuration
    for key in ["path"]:
        try:
            config[f"store_{key}"] = o_store[key]
        except Exception:
            raise MalformedConfigurationError(
                f"Missing second-level key '{key}' under 'store'"
            )

    # Get the API configuration
    for key in ["address", "port"]:
        try:
            config[f"api_{key}"] = o_api[key]
        except Exception:
            raise MalformedConfigurationError(
                f"Missing second-level key '{key}' under 'api'"
            )

    # Get the queue configuration
    for key in ["address", "port", "path"]:
        try:
            config[f"queue_{key}"] = o_queue[key]
        except Exception:
            raise MalformedConfigurationError(
                f"Missing second-level key '{key}' under 'queue'"
            )

    # Get the driver defaults; every key is optional
    o_driver = o_base.get("driver") or dict()
    driver_defaults = {
        "endpoint": DEFAULT_ENDPOINT,
        "transport": DEFAULT_TRANSPORT,
        "ssh_user": DEFAULT_SSH_USER,
        "ssh_password": DEFAULT_SSH_PASSWORD,
        "ssh_port": DEFAULT_SSH_PORT,
        "probe_timeout": DEFAULT_PROBE_TIMEOUT,
    }
    for key, default in driver_defaults.items():
        config[f"driver_{key}"] = o_driver.get(key, default)

    # Get the Notifications configuration; absent means disabled
    o_notifications = o_base.get("notifications") or dict()
    config["notifications_enabled"] = strtobool(o_notifications.get("enabled", False))
    if config["notifications_enabled"]:
        for key in ["uri", "action", "icons", "body"]:
            try:
                config[f"notifications_{key}"] = o_notifications[key]
            except Exception:
                raise MalformedConfigurationError(
                    f"Missing second-level key '{key}' under 'notifications'"
                )

    return config


config = read_config()


##########################################################
# Entrypoint
##########################################################


def entrypoint():
    import rackhddriver.flaskapi as rackhddriver  # noqa: E402

    logging.basicConfig(level=logging.DEBUG if config["debug"] else logging.INFO)

    # Print our startup messages
    print("")
    print("|----------------------------------------------------------|")
    print("| RackHD machine driver API daemon v{0: <22} |".format(version))
    print("| Debug: {0: <49} |".format(str(config["debug"])))
    print("| API version: v{0: <42} |".format(API_VERSION))
    print(
        "| Listen: {0: <48} |".format(
            "{}:{}".format(config["api_address"], config["api_port"])
        )
    )
    print("| Store: {0: <49} |".format(config["store_path"]))
    print("|----------------------------------------------------------|")
    print("")

    notifications.send_webhook(config, "info", "Initializing RackHD driver daemon")

    # Initialize the database
    db.init_database(config)

    if "--init-only" in argv:
        print("Successfully initialized RackHD driver daemon; exiting.")
        exit(0)

    def term(signum="", frame=""):
        print("Received TERM, exiting.")
        notifications.send_webhook(config, "info", "Received TERM, exiting RackHD driver daemon")
        exit(0)

    signal.signal(signal.SIGTERM, term)
    signal.signal(signal.SIGINT, term)
    signal.signal(signal.SIGQUIT, term)

    notifications.send_webhook(config, "info", "Starting up RackHD driver daemon")

    # Start Flask
    rackhddriver.app.run(
        config["api_address"],
        config["api_port"],
        use_reloader=False,
        threaded=False,
    )
