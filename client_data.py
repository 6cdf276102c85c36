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
import dataclasses
from typing import Optional

from console_connection import ConsoleConnection
from server_lifecycle_manager import ServerLifecycleManager


@dataclasses.dataclass
class ConsoleSession:
    group_id: int
    server_id: int
    connection: ConsoleConnection


class ClientData:

    def __init__(self):
        self.groups: dict[int, ServerLifecycleManager] = dict()
        self.sessions: dict[int, ConsoleSession] = dict()  # by server id

        self.shutdown_event = asyncio.Event()

    def get_connection(self, server_id: int) -> Optional[ConsoleConnection]:
        session = self.sessions.get(server_id)
        return session.connection if session is not None else None
