#!/usr/bin/env python3

# db.py - RackHD machine driver database libraries
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
import sqlite3
import contextlib

from rackhddriver.lib.dataclasses import Machine

from celery.utils.log import get_task_logger


logger = get_task_logger(__name__)


#
# Database functions
#
@contextlib.contextmanager
def dbconn(db_path):
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        yield cur
        conn.commit()
    finally:
        conn.close()


def init_database(config):
    db_path = config["database_path"]
    if not os.path.isfile(db_path):
        logger.info("First run: initializing database.")
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
        with dbconn(db_path) as cur:
            # Table listing all machines
            cur.execute(
                """CREATE TABLE machines
                           (id INTEGER PRIMARY KEY AUTOINCREMENT,
                            name TEXT UNIQUE NOT NULL,
                            state TEXT NOT NULL,
                            node_id TEXT NOT NULL,
                            endpoint TEXT NOT NULL,
                            transport TEXT NOT NULL,
                            ssh_user TEXT NOT NULL,
                            ssh_password TEXT NOT NULL,
                            ssh_port INTEGER NOT NULL,
                            ip_address TEXT)"""
            )


#
# Machine functions
#
def get_machine(config, mid=None, name=None):
    if mid is None and name is None:
        return None
    elif mid is not None:
        findfield = "id"
        datafield = mid
    elif name is not None:
        findfield = "name"
        datafield = name

    with dbconn(config["database_path"]) as cur:
        cur.execute(f"""SELECT * FROM machines WHERE {findfield} = ?""", (datafield,))
        rows = cur.fetchall()

    if len(rows) > 0:
        row = rows[0]
    else:
        return None

    return Machine(*row)


def get_machines(config):
    with dbconn(config["database_path"]) as cur:
        cur.execute("""SELECT * FROM machines ORDER BY id""")
        rows = cur.fetchall()

    return [Machine(*row) for row in rows]


def add_machine(config, name, state, driver_config):
    with dbconn(config["database_path"]) as cur:
        cur.execute(
            """INSERT INTO machines
                        (name, state, node_id, endpoint, transport, ssh_user, ssh_password, ssh_port)
                        VALUES
                        (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                name,
                state,
                driver_config.node_id,
                driver_config.endpoint,
                driver_config.transport,
                driver_config.ssh_user,
                driver_config.ssh_password,
                driver_config.ssh_port,
            ),
        )

    logger.info(f"New machine {name} added for Node ID {driver_config.node_id}")
    return get_machine(config, name=name)


def update_machine_state(config, name, state):
    with dbconn(config["database_path"]) as cur:
        cur.execute(
            """UPDATE machines
                        SET state = ?
                        WHERE name = ?""",
            (state, name),
        )

    return get_machine(config, name=name)


def update_machine_address(config, name, ip_address):
    with dbconn(config["database_path"]) as cur:
        cur.execute(
            """UPDATE machines
                        SET ip_address = ?
                        WHERE name = ?""",
            (ip_address, name),
        )

    return get_machine(config, name=name)


def delete_machine(config, name):
    with dbconn(config["database_path"]) as cur:
        cur.execute("""DELETE FROM machines WHERE name = ?""", (name,))
