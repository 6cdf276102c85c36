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
import enum
from typing import Optional

from constants import SERVER_HEARTBEAT_EPOCH, SERVER_HEARTBEAT_TIMEOUT


class ConnectionState(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionAction(enum.Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    NONE = "none"


def is_heartbeat_fresh(last_heartbeat_at: Optional[datetime.datetime],
                       timeout: datetime.timedelta = SERVER_HEARTBEAT_TIMEOUT,
                       now: Optional[datetime.datetime] = None) -> bool:
    if last_heartbeat_at is None:
        last_heartbeat_at = SERVER_HEARTBEAT_EPOCH
    if now is None:
        now = datetime.datetime.now(datetime.timezone.utc)
    return now - last_heartbeat_at < timeout


def decide(state: ConnectionState, has_console_permission: bool, heartbeat_fresh: bool) -> ConnectionAction:
    """
    Permission and a fresh heartbeat are both required to hold a console connection.
    """
    if state == ConnectionState.DISCONNECTED:
        if has_console_permission and heartbeat_fresh:
            return ConnectionAction.CONNECT
    elif not has_console_permission or not heartbeat_fresh:
        return ConnectionAction.DISCONNECT
    return ConnectionAction.NONE
