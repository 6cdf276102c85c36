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
import asyncio
import logging
import os
from typing import Callable, Optional

from websockets.asyncio.client import connect

from client_data import ClientData, ConsoleSession
from collaborators import MetadataService, SubscriptionBus
from config import Config, ConfigurationLoadError
from console_connection import ConsoleConnection
from event_router import EventEmitter
from logger import setup_logging
from managed_server import ManagedServer
from schemas import GroupInfo, GroupMemberInfo
from server_lifecycle_manager import ServerLifecycleManager

CLIENT_SIGNALS = ("connect", "disconnect")


class ConsoleClient:
    """
    Manages the console connections of every group this client has joined.

    ``on("connect", handler)`` is called with the ConsoleConnection of each server that becomes connected,
    ``on("disconnect", handler)`` with the ManagedServer of each connected server that goes away.
    """

    def __init__(self, config: Config, api: MetadataService, subscriptions: SubscriptionBus,
                 connector: Callable = connect):
        self._config = config
        self._api = api
        self._subscriptions = subscriptions
        self._connector = connector
        self._data = ClientData()
        self._signals = EventEmitter("client")

    @property
    def groups(self) -> dict[int, ServerLifecycleManager]:
        return self._data.groups

    @property
    def sessions(self) -> dict[int, ConsoleSession]:
        return self._data.sessions

    def get_connection(self, server_id: int) -> Optional[ConsoleConnection]:
        return self._data.get_connection(server_id)

    def on(self, event: str, handler: Callable) -> None:
        if event not in CLIENT_SIGNALS:
            raise ValueError(f"Unknown client signal {event}")
        self._signals.on(event, handler)

    async def start(self):
        logging.info("Starting console client")
        joined = await self._api.get_joined_groups()

        if joined is None:
            logging.error("Couldn't get joined groups.")
            return

        for group, member in joined:
            await self.add_group(group, member)

        logging.info(f"Managing {len(self._data.groups)} group(s).")

    async def add_group(self, group: GroupInfo, member: GroupMemberInfo) -> Optional[ServerLifecycleManager]:
        if not self._config.manages_group(group.id):
            logging.debug(f"Group {group.id} ({group.name}) is not configured to be managed.")
            return None

        if group.id in self._data.groups:
            logging.error(f"Group {group.id} ({group.name}) is already managed.")
            return None

        logging.info(f"Managing group {group.id} ({group.name}).")
        manager = ServerLifecycleManager(
            group, member, self._api, self._subscriptions,
            heartbeat_timeout=self._config.heartbeat_timeout,
            open_timeout=self._config.open_timeout,
            ping_interval=self._config.ping_interval,
            connector=self._connector,
        )
        manager.signals.on("connect", self._handle_connect)
        manager.signals.on("disconnect", self._handle_disconnect)
        self._data.groups[group.id] = manager

        await manager.init()
        return manager

    async def remove_group(self, group_id: int) -> bool:
        manager = self._data.groups.pop(group_id, None)

        if manager is None:
            logging.error(f"Can't stop managing unmanaged group {group_id}.")
            return False

        logging.info(f"No longer managing group {group_id} ({manager.name}).")
        await manager.dispose()
        return True

    def _handle_connect(self, connection):
        server = connection.server
        self._data.sessions[server.id] = ConsoleSession(server.group_id, server.id, connection)
        self._signals.emit("connect", connection)

    def _handle_disconnect(self, server: ManagedServer):
        self._data.sessions.pop(server.id, None)
        self._signals.emit("disconnect", server)

    async def stop(self):
        logging.info("Stopping console client")
        for group_id in list(self._data.groups):
            await self.remove_group(group_id)
        self._data.shutdown_event.set()

    async def wait_closed(self):
        await self._data.shutdown_event.wait()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


async def run(api: MetadataService, subscriptions: SubscriptionBus, on_connect: Optional[Callable] = None):
    """
    Loads the configuration and keeps consoles connected until cancelled.
    The caller owns the REST and push-notification transports behind api and subscriptions.
    """
    setup_logging()
    config = Config(os.environ.get("CONSOLE_KEEPER_CONFIG", "./config.toml"))

    try:
        await config.initialize()
    except ConfigurationLoadError:
        logging.error("Could not load configuration. Exiting")
        return

    client = ConsoleClient(config, api, subscriptions)
    if on_connect is not None:
        client.on("connect", on_connect)

    async with client:
        try:
            logging.info("Ctrl^C to quit")
            await client.wait_closed()
        except asyncio.CancelledError:
            logging.info("Cancelled ...")
        except KeyboardInterrupt:
            logging.info("Cancelled ...")
        finally:
            logging.info("Stopping client ...")
