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

import dataclasses
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

from schemas import ConnectionDetails, GroupInfo, GroupMemberInfo, ServerInfo


@dataclasses.dataclass
class PushMessage:
    event: str
    key: str
    content: Any  # GroupInfo, GroupMemberInfo or ServerInfo depending on event


PushHandler = Callable[[PushMessage], Optional[Awaitable[None]]]


class MetadataService(ABC):
    """
    REST side of the platform. Every method returns None when the data is unavailable, and never raises.
    """

    @abstractmethod
    async def get_group_info(self, group_id: int) -> Optional[GroupInfo]:
        """Group name, roles and servers."""

    @abstractmethod
    async def get_group_member(self, group_id: int, user_id: int) -> Optional[GroupMemberInfo]:
        """A member's user id and assigned role."""

    @abstractmethod
    async def get_server_info(self, server_id: int) -> Optional[ServerInfo]:
        """Server name and heartbeat."""

    @abstractmethod
    async def get_server_connection_details(self, server_id: int) -> Optional[ConnectionDetails]:
        """Console address, websocket port and token."""

    @abstractmethod
    async def get_joined_groups(self) -> Optional[list[tuple[GroupInfo, GroupMemberInfo]]]:
        """Every group this client belongs to, with its own membership record."""


class SubscriptionBus(ABC):
    """
    Push-notification side of the platform, keyed by (event, key).
    """

    @abstractmethod
    async def subscribe(self, event: str, key: str, handler: PushHandler) -> None:
        """Deliver every (event, key) message to handler."""

    @abstractmethod
    async def unsubscribe(self, event: str, key: str) -> None:
        """Stop delivering (event, key) messages."""
