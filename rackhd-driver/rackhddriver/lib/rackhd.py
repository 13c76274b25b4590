#!/usr/bin/env python3

# rackhd.py - RackHD machine driver API client
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

# Refs:
# https://rackhd.readthedocs.io/en/latest/rackhd/monorail_api_1.1.html

import requests
import urllib3
from celery.utils.log import get_task_logger

from rackhddriver.lib.dataclasses import AddressRecord
from rackhddriver.lib.exceptions import RackHDException


logger = get_task_logger(__name__)


# API v2.0 changes the prefix and adds authentication; only 1.1 is spoken here
API_PREFIX = "/api/1.1"


class RackHDSession:
    """
    A thin client for the parts of the RackHD (Monorail) 1.1 API the driver needs

    The session is stateless on the RackHD side; no login is performed.
    """

    def __init__(self, endpoint, transport="http"):
        # RackHD commonly runs with a self-signed certificate
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        self.endpoint = endpoint
        self.transport = transport
        self.host = f"{transport}://{endpoint}"
        self.headers = {"content-type": "application/json"}

    def get(self, uri, params=None):
        url = f"{self.host}{API_PREFIX}{uri}"

        logger.debug(f"GET {url} params={params}")
        response = requests.get(url, params=params, headers=self.headers, verify=False)

        if response.status_code in [200, 201]:
            return response.json()
        else:
            logger.warning(f"! Error: GET request to {url} failed")
            logger.warning(f"! HTTP Code: {response.status_code}")
            raise RackHDException(f"GET request to {url} failed", response=response)

    def get_config(self):
        """
        Fetch the server configuration; used as an accessibility check
        """
        return self.get("/config")

    def lookup(self, query):
        """
        Look up a node ID, MAC address or IP address and return its address records
        """
        payload = self.get("/lookups", params={"q": query})

        records = list()
        for entry in payload or []:
            if not isinstance(entry, dict):
                logger.debug(f"Ignoring non-object lookup entry: {entry}")
                continue
            records.append(AddressRecord.from_dict(entry))
        return records
