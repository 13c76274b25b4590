#!/usr/bin/env python3

# flaskapi.py - RackHD machine driver Flask API
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

import flask
import json

from rackhddriver.Daemon import config

import rackhddriver.lib.db as db
import rackhddriver.lib.lib as lib

from rackhddriver.lib.exceptions import (
    MachineExistsError,
    MachineNotFoundError,
    RackHDDriverError,
)

from flask_restful import Resource, Api
from celery import Celery
from celery.utils.log import get_task_logger


logger = get_task_logger(__name__)


# Create Flask app and set config values
app = flask.Flask(__name__)
blueprint = flask.Blueprint("api", __name__, url_prefix="")
api = Api(blueprint)
app.register_blueprint(blueprint)

app.config[
    "CELERY_BROKER_URL"
] = f"redis://{config['queue_address']}:{config['queue_port']}{config['queue_path']}"

celery = Celery(app.name, broker=app.config["CELERY_BROKER_URL"])


#
# Celery functions
#
@celery.task(bind=True)
def create_machine(self, name):
    db.init_database(config)
    lib.create_machine(config, name)


#
# Helper functions
#
def load_request_data():
    try:
        data = json.loads(flask.request.data)
    except Exception as e:
        logger.warning(f"Invalid JSON data: {e}")
        return None
    if not isinstance(data, dict):
        return None
    return data


#
# API routes
#
class API_Root(Resource):
    def get(self):
        """
        Return basic details of the API
        ---
        tags:
          - root
        responses:
          200:
            description: OK
            schema:
              type: object
              id: Message
              properties:
                message:
                  type: string
                  description: A text message describing the result
                  example: "rackhd driver API"
        """
        return {"message": "rackhd driver API"}, 200


api.add_resource(API_Root, "/")


class API_Machines(Resource):
    def get(self):
        """
        Return the status of all machines
        ---
        tags:
          - machines
        responses:
          200:
            description: OK
            schema:
              type: array
              items:
                type: object
                id: MachineStatus
        """
        return [lib.machine_status(config, m.name) for m in db.get_machines(config)], 200

    def post(self):
        """
        Register a machine and queue its creation
        ---
        tags:
          - machines
        consumes:
          - application/json
        parameters:
          - in: body
            name: machine
            description: The machine name and driver options, keyed by flag name.
            schema:
              type: object
              required:
                - name
                - rackhd-node-id
              properties:
                name:
                  type: string
                  example: "node1"
                rackhd-node-id:
                  type: string
                  description: Node ID, MAC Address or IP Address of the node.
                  example: "5678abcd1234ef0012345678"
                rackhd-endpoint:
                  type: string
                  example: "rackhd.local:8080"
                rackhd-transport:
                  type: string
                  example: "http"
                rackhd-ssh-user:
                  type: string
                  example: "root"
                rackhd-ssh-password:
                  type: string
                  example: "root"
                rackhd-ssh-port:
                  type: integer
                  example: 22
        responses:
          202:
            description: Accepted
            schema:
              type: object
              id: Message
          400:
            description: Bad request
            schema:
              type: object
              id: Message
          409:
            description: Conflict
            schema:
              type: object
              id: Message
        """
        data = load_request_data()
        if data is None:
            return {"message": "Request body must be a JSON object"}, 400

        try:
            machine = lib.register_machine(config, data)
        except MachineExistsError as e:
            return {"message": str(e)}, 409
        except RackHDDriverError as e:
            return {"message": str(e)}, 400

        logger.info(f"Queueing creation of machine {machine.name}")
        task = create_machine.delay(machine.name)
        logger.debug(task)
        return {"message": f"Creation of machine {machine.name} queued"}, 202


api.add_resource(API_Machines, "/machines")


class API_Machine(Resource):
    def get(self, name):
        """
        Return the status of a machine
        ---
        tags:
          - machines
        responses:
          200:
            description: OK
            schema:
              type: object
              id: MachineStatus
          404:
            description: Not found
            schema:
              type: object
              id: Message
        """
        try:
            return lib.machine_status(config, name), 200
        except MachineNotFoundError as e:
            return {"message": str(e)}, 404

    def delete(self, name):
        """
        Remove a machine
        ---
        tags:
          - machines
        responses:
          200:
            description: OK
            schema:
              type: object
              id: Message
          404:
            description: Not found
            schema:
              type: object
              id: Message
        """
        try:
            lib.remove_machine(config, name)
        except MachineNotFoundError as e:
            return {"message": str(e)}, 404
        return {"message": f"Removed machine {name}"}, 200


api.add_resource(API_Machine, "/machines/<name>")


class API_Machine_Action(Resource):
    def post(self, name, action):
        """
        Run a power action (start, stop, restart, kill) on a machine
        ---
        tags:
          - machines
        responses:
          200:
            description: OK
            schema:
              type: object
              id: Message
          400:
            description: Bad request
            schema:
              type: object
              id: Message
          404:
            description: Not found
            schema:
              type: object
              id: Message
        """
        try:
            lib.machine_action(config, name, action)
        except MachineNotFoundError as e:
            return {"message": str(e)}, 404
        except RackHDDriverError as e:
            return {"message": str(e)}, 400
        return {"message": f"Ran {action} on machine {name}"}, 200


api.add_resource(API_Machine_Action, "/machines/<name>/<action>")
