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
import datetime
import logging
from typing import Callable, Optional

from websockets.asyncio.client import connect

from collaborators import MetadataService, PushMessage, SubscriptionBus
from connection_policy import ConnectionAction, decide
from constants import (
    CONSOLE_OPEN_TIMEOUT,
    CONSOLE_PERMISSION,
    CONSOLE_PING_INTERVAL,
    GROUP_MEMBER_UPDATE,
    GROUP_SERVER_CREATE,
    GROUP_SERVER_DELETE,
    GROUP_SERVER_STATUS,
    GROUP_UPDATE,
    SERVER_HEARTBEAT_TIMEOUT,
)
from event_router import EventEmitter
from managed_server import ManagedServer
from schemas import GroupInfo, GroupMemberInfo, ServerInfo, get_permissions


def content_server_id(content) -> Optional[int]:
    """
    Create and delete pushes carry either the bare server id or a record with an ``id``.
    """
    if isinstance(content, int):
        value = content
    elif isinstance(content, dict):
        value = content.get("id")
    else:
        value = getattr(content, "id", None)
    return value if isinstance(value, int) and not isinstance(value, bool) else None


class ServerLifecycleManager:
    """
    Keeps the console connections of one group's servers in line with this client's console permission and each
    server's heartbeat.
    """
    servers: dict[int, ManagedServer]

    def __init__(self, group: GroupInfo, member: GroupMemberInfo, api: MetadataService,
                 subscriptions: SubscriptionBus,
                 heartbeat_timeout: datetime.timedelta = SERVER_HEARTBEAT_TIMEOUT,
                 open_timeout: float = CONSOLE_OPEN_TIMEOUT,
                 ping_interval: Optional[float] = CONSOLE_PING_INTERVAL,
                 connector: Callable = connect):
        self.id = group.id
        self.name = group.name
        self.servers = dict()
        self.signals = EventEmitter(f"group {group.id}")
        self._api = api
        self._subscriptions = subscriptions
        self._user_id = member.user_id
        self._heartbeat_timeout = heartbeat_timeout
        self._server_options = dict(open_timeout=open_timeout, ping_interval=ping_interval, connector=connector)
        self.permissions = get_permissions(group, member)

        if not self.has_console_permission:
            logging.warning(f"This client does not have '{CONSOLE_PERMISSION}' permissions for group "
                            f"{self.id} ({self.name}): {self.permissions}")

        self._add_servers(group)

    @property
    def _key(self) -> str:
        return str(self.id)

    @property
    def has_console_permission(self) -> bool:
        return CONSOLE_PERMISSION in self.permissions

    async def init(self):
        """
        Subscribes to group updates, then fetches every server's status before the first policy pass.
        """
        await asyncio.gather(
            self._subscriptions.subscribe(GROUP_UPDATE, self._key, self._handle_group_update),
            self._subscriptions.subscribe(GROUP_MEMBER_UPDATE, self._key, self._handle_member_update),
            self._subscriptions.subscribe(GROUP_SERVER_STATUS, self._key, self._handle_server_status),
            self._subscriptions.subscribe(GROUP_SERVER_CREATE, self._key, self._handle_server_create),
            self._subscriptions.subscribe(GROUP_SERVER_DELETE, self._key, self._handle_server_delete),
        )

        await self.update_servers()

    async def _handle_group_update(self, message: PushMessage):
        group: GroupInfo = message.content
        member = await self._api.get_group_member(self.id, self._user_id)

        if member is None:
            logging.error(f"Couldn't find group member info for group {self.id}.")
            return

        await self.update_permissions(group, member)

    async def _handle_member_update(self, message: PushMessage):
        member: GroupMemberInfo = message.content

        if member.user_id != self._user_id:
            return

        logging.info(f"Membership updated for group {self.id}.")
        group = await self._api.get_group_info(self.id)

        if group is None:
            logging.error(f"Couldn't get info for group {self.id}.")
            return

        await self.update_permissions(group, member)

    async def _handle_server_status(self, message: PushMessage):
        status: ServerInfo = message.content
        logging.debug(f"Status updated for server {status.id} in group {self.id}: {status}")
        await self.manage_server_connection(status)

    async def _handle_server_create(self, message: PushMessage):
        # nothing but the platform developers can create servers yet, so this path has never run for real
        logging.warning(f"Running untested server create handling for group {self.id}: {message.content}")
        server_id = content_server_id(message.content)
        if server_id is None:
            logging.error(f"Server create message for group {self.id} has no server id: {message.content}")
            return
        self.add_server(server_id)

    async def _handle_server_delete(self, message: PushMessage):
        # same as above, for deletion
        logging.warning(f"Running untested server delete handling for group {self.id}: {message.content}")
        server_id = content_server_id(message.content)
        if server_id is None:
            logging.error(f"Server delete message for group {self.id} has no server id: {message.content}")
            return
        await self.remove_server(server_id)

    async def update_servers(self):
        await asyncio.gather(*(self.update_server(server_id) for server_id in list(self.servers)))

    async def update_server(self, server_id: int):
        logging.debug(f"Updating info for server {server_id} in group {self.id}.")
        status = await self._api.get_server_info(server_id)

        if status is None:
            logging.error(f"Couldn't get status for server {server_id} in group {self.id}.")
            return

        await self.manage_server_connection(status)

    async def update_permissions(self, group: GroupInfo, member: GroupMemberInfo):
        had_console_permission = self.has_console_permission
        if group.name:
            self.name = group.name
        self.permissions = get_permissions(group, member)

        if not had_console_permission and self.has_console_permission:
            logging.info(f"Client gained console access to servers in group {self.id} ({self.name}).")
        elif had_console_permission and not self.has_console_permission:
            logging.info(f"Client lost console access to servers in group {self.id} ({self.name}).")

        await self.update_servers()

    async def manage_server_connection(self, status: ServerInfo) -> ConnectionAction:
        server = self.servers.get(status.id)

        if server is None:
            logging.error(f"Server {status.id} not found in group {self.id}.")
            return ConnectionAction.NONE

        server.update_status(status)
        action = decide(server.state, self.has_console_permission, server.is_online(self._heartbeat_timeout))

        if action == ConnectionAction.CONNECT:
            await server.connect()
        elif action == ConnectionAction.DISCONNECT:
            await server.disconnect()

        return action

    def _add_servers(self, group: GroupInfo):
        logging.debug(f"Adding all servers for group {self.id}.")
        for server in group.servers:
            self.add_server(server.id, server.name)

    def add_server(self, server_id: int, name: str = '') -> Optional[ManagedServer]:
        logging.debug(f"Adding server {server_id} to group {self.id}.")

        if server_id in self.servers:
            logging.error(f"Can't add server {server_id} to group {self.id} more than once.")
            return None

        server = ManagedServer(server_id, self.id, self._api, **self._server_options)
        server.name = name or ''
        server.signals.on("connect", self._forward_connect)
        server.signals.on("disconnect", self._forward_disconnect)
        self.servers[server_id] = server
        return server

    def _forward_connect(self, connection):
        self.signals.emit("connect", connection)

    def _forward_disconnect(self, server: ManagedServer):
        self.signals.emit("disconnect", server)

    async def remove_servers(self):
        logging.debug(f"Removing all servers from group {self.id}.")
        for server_id in list(self.servers):
            await self.remove_server(server_id)

    async def remove_server(self, server_id: int) -> bool:
        logging.debug(f"Removing server {server_id} from group {self.id}.")
        server = self.servers.pop(server_id, None)

        if server is None:
            logging.error(f"Can't remove unmanaged server {server_id} from group {self.id}.")
            return False

        await server.dispose()
        return True

    async def dispose(self):
        """
        Tears down every managed server and all five group subscriptions. Call once.
        """
        await self.remove_servers()

        await asyncio.gather(
            self._subscriptions.unsubscribe(GROUP_UPDATE, self._key),
            self._subscriptions.unsubscribe(GROUP_SERVER_CREATE, self._key),
            self._subscriptions.unsubscribe(GROUP_SERVER_DELETE, self._key),
            self._subscriptions.unsubscribe(GROUP_SERVER_STATUS, self._key),
            self._subscriptions.unsubscribe(GROUP_MEMBER_UPDATE, self._key),
        )
        self.signals.remove_all()
