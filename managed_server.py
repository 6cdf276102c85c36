"""
ConsoleKeeper
Copyright (C) 2024 thiccaxe

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import datetime
import logging
from typing import Callable, Optional

from websockets.asyncio.client import connect

from collaborators import MetadataService
from connection_policy import ConnectionState, is_heartbeat_fresh
from console_connection import ConsoleConnection
from constants import CONSOLE_OPEN_TIMEOUT, CONSOLE_PING_INTERVAL, SERVER_HEARTBEAT_TIMEOUT
from event_router import EventEmitter
from schemas import ServerInfo


class ManagedServer:
    """
    A server whose console connection is owned by exactly one group.

    disconnected -> connecting -> connected -> disconnected. The connecting -> connected step only happens when the
    console reports a successful connection. Emits ``connect(connection)`` and ``disconnect(server)`` on
    ``signals``.
    """

    def __init__(self, server_id: int, group_id: int, api: MetadataService,
                 open_timeout: float = CONSOLE_OPEN_TIMEOUT,
                 ping_interval: Optional[float] = CONSOLE_PING_INTERVAL,
                 connector: Callable = connect):
        self.id = server_id
        self.name = ''
        self.group_id = group_id
        self.state = ConnectionState.DISCONNECTED
        self.last_heartbeat_at: Optional[datetime.datetime] = None
        self.connection: Optional[ConsoleConnection] = None
        self.signals = EventEmitter(f"server {server_id}")
        self._api = api
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval
        self._connector = connector
        self._attempt = 0

    def update_status(self, status: ServerInfo) -> None:
        self.last_heartbeat_at = status.online_ping
        if status.name:
            self.name = status.name

    def is_online(self, timeout: datetime.timedelta = SERVER_HEARTBEAT_TIMEOUT,
                  now: Optional[datetime.datetime] = None) -> bool:
        return is_heartbeat_fresh(self.last_heartbeat_at, timeout, now)

    async def connect(self):
        if self.state != ConnectionState.DISCONNECTED:
            logging.debug(f"Server {self.id} ({self.name}) is already {self.state.value}.")
            return

        self.state = ConnectionState.CONNECTING
        self._attempt += 1
        attempt = self._attempt
        logging.info(f"Connecting to server {self.id} ({self.name}) in group {self.group_id}.")

        details = await self._api.get_server_connection_details(self.id)

        if attempt != self._attempt or self.state != ConnectionState.CONNECTING:
            logging.debug(f"Server {self.id} ({self.name}) stopped connecting while fetching connection details.")
            return

        if details is None:
            logging.error(f"Couldn't get console connection details for server {self.id} ({self.name}).")
            self.state = ConnectionState.DISCONNECTED
            return

        if not details.allowed or details.address is None or details.port is None:
            logging.error(f"Console connection to server {self.id} ({self.name}) is not allowed.")
            self.state = ConnectionState.DISCONNECTED
            return

        connection = ConsoleConnection(self, details.address, details.port, details.token,
                                       open_timeout=self._open_timeout,
                                       ping_interval=self._ping_interval,
                                       connector=self._connector)
        connection.on("open", self._handle_open)
        connection.on("close", self._handle_close)
        connection.on("error", self._handle_error)
        self.connection = connection
        connection.open()

    def _handle_open(self):
        if self.state != ConnectionState.CONNECTING:
            return
        self.state = ConnectionState.CONNECTED
        logging.info(f"Connected to server {self.id} ({self.name}).")
        self.signals.emit("connect", self.connection)

    def _handle_close(self, code: Optional[int] = None, reason: Optional[str] = None):
        connection = self.connection
        was_connected = self.state == ConnectionState.CONNECTED
        self.connection = None
        self.state = ConnectionState.DISCONNECTED
        self._attempt += 1
        logging.info(f"Console of server {self.id} ({self.name}) closed with code {code}: {reason}.")

        if was_connected:
            self.signals.emit("disconnect", self)
        if connection is not None:
            # scheduled by the emitter
            return connection.dispose()

    def _handle_error(self, error: BaseException):
        logging.debug(f"Server {self.id} ({self.name}) console error {error!r} while {self.state.value}.")

    async def disconnect(self):
        if self.state == ConnectionState.DISCONNECTED:
            return

        was_connected = self.state == ConnectionState.CONNECTED
        connection = self.connection
        self.connection = None
        self.state = ConnectionState.DISCONNECTED
        self._attempt += 1
        logging.info(f"Disconnecting from server {self.id} ({self.name}).")

        if was_connected:
            self.signals.emit("disconnect", self)
        if connection is not None:
            await connection.dispose()

    async def dispose(self):
        await self.disconnect()
        self.signals.remove_all()
