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
import datetime
from typing import Optional

import voluptuous
from voluptuous import Schema, Required, Any, ALLOW_EXTRA


def timestamp_validator(value) -> Optional[datetime.datetime]:
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        parsed = value
    else:
        try:
            parsed = datetime.datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as e:
            raise voluptuous.error.Invalid(message="Invalid timestamp.") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed


SERVER_INFO_SCHEMA = Schema({
    Required('id'): int,
    voluptuous.Optional('name', default=''): Any(None, str),
    voluptuous.Optional('online_ping', default=None): timestamp_validator,
}, extra=ALLOW_EXTRA)

GROUP_ROLE_SCHEMA = Schema({
    Required('role_id'): int,
    voluptuous.Optional('name', default=''): Any(None, str),
    voluptuous.Optional('permissions', default=list): [str],
}, extra=ALLOW_EXTRA)

GROUP_INFO_SCHEMA = Schema({
    Required('id'): int,
    voluptuous.Optional('name', default=''): Any(None, str),
    voluptuous.Optional('roles', default=list): Any(None, [dict]),
    voluptuous.Optional('servers', default=list): Any(None, [dict]),
}, extra=ALLOW_EXTRA)

GROUP_MEMBER_SCHEMA = Schema({
    Required('user_id'): int,
    voluptuous.Optional('group_id', default=None): Any(None, int),
    voluptuous.Optional('username', default=''): Any(None, str),
    voluptuous.Optional('role_id', default=None): Any(None, int),
}, extra=ALLOW_EXTRA)

CONNECTION_DETAILS_SCHEMA = Schema({
    Required('allowed'): bool,
    voluptuous.Optional('token', default=''): Any(None, str),
    voluptuous.Optional('connection', default=None): Any(None, Schema({
        Required('address'): str,
        Required('websocket_port'): int,
    }, extra=ALLOW_EXTRA)),
}, extra=ALLOW_EXTRA)


@dataclasses.dataclass
class ServerInfo:
    id: int
    name: str
    online_ping: Optional[datetime.datetime]  # last heartbeat

    @staticmethod
    def parse(data: dict):
        data = SERVER_INFO_SCHEMA(data)
        return ServerInfo(data['id'], data['name'] or '', data['online_ping'])


@dataclasses.dataclass
class GroupRole:
    role_id: int
    name: str
    permissions: list[str]

    @staticmethod
    def parse(data: dict):
        data = GROUP_ROLE_SCHEMA(data)
        return GroupRole(data['role_id'], data['name'] or '', list(data['permissions']))


@dataclasses.dataclass
class GroupInfo:
    id: int
    name: str
    roles: list[GroupRole]
    servers: list[ServerInfo]

    @staticmethod
    def parse(data: dict):
        data = GROUP_INFO_SCHEMA(data)
        return GroupInfo(
            data['id'],
            data['name'] or '',
            [GroupRole.parse(role) for role in data['roles'] or []],
            [ServerInfo.parse(server) for server in data['servers'] or []],
        )


@dataclasses.dataclass
class GroupMemberInfo:
    user_id: int
    role_id: Optional[int]
    group_id: Optional[int] = None
    username: str = ''

    @staticmethod
    def parse(data: dict):
        data = GROUP_MEMBER_SCHEMA(data)
        return GroupMemberInfo(data['user_id'], data['role_id'], data['group_id'], data['username'] or '')


@dataclasses.dataclass
class ConnectionDetails:
    """
    where and how to open a server's console websocket
    """
    allowed: bool
    address: Optional[str]
    port: Optional[int]
    token: str

    @staticmethod
    def parse(data: dict):
        data = CONNECTION_DETAILS_SCHEMA(data)
        connection = data['connection'] or {}
        return ConnectionDetails(
            data['allowed'],
            connection.get('address'),
            connection.get('websocket_port'),
            data['token'] or '',
        )


def get_permissions(group: GroupInfo, member: GroupMemberInfo) -> list[str]:
    """
    A member's permissions are those of its role. An unknown role has none.
    """
    for role in group.roles:
        if role.role_id == member.role_id:
            return list(role.permissions)
    return []
