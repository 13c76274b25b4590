#!/usr/bin/env python3

# notifications.py - RackHD machine driver notification libraries
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

import json
import requests

from celery.utils.log import get_task_logger


logger = get_task_logger(__name__)


WEBHOOK_ACTIONS = ["get", "post", "put", "patch", "delete", "options"]


def format_body(config, status, message, machine=None):
    """
    Render the configured body template for one event
    """
    formatted_body = dict()
    for element, value in config["notifications_body"].items():
        formatted_body[element] = value.format(
            icon=config["notifications_icons"].get(status, ""),
            message=message,
            machine=machine or "",
        )
    return formatted_body


def send_webhook(config, status, message, machine=None):
    """
    Send a progress notification webhook

    Notifications are informational only: delivery failures are logged and never raised.
    """
    if not config["notifications_enabled"]:
        return

    action = config["notifications_action"]
    if action not in WEBHOOK_ACTIONS:
        logger.warning(f"Unsupported notification action '{action}'; not sending")
        return

    logger.debug(f"Sending notification to {config['notifications_uri']}")

    data = json.dumps(format_body(config, status, message, machine=machine))
    headers = {"content-type": "application/json"}

    try:
        result = requests.request(
            action.upper(),
            config["notifications_uri"],
            headers=headers,
            data=data,
            timeout=15,
        )
    except requests.exceptions.RequestException as e:
        logger.warning(f"Failed to send notification: {e}")
        return

    logger.debug(f"Result: {result}")
