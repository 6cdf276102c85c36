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
from typing import Optional


class CommandIdCollision(Exception): pass


class CommandCorrelator:
    """
    Matches command responses to the commands that caused them.

    Every outbound command gets the next id (starting at 1) and a future. A response carrying that id resolves the
    future. An id leaves the pending table exactly once: resolved, rejected, or abandoned.
    Knows nothing about sockets; the owner writes the frame and feeds responses back in.
    """

    def __init__(self, name: str = "console"):
        self._name = name
        self._next_id = 1
        self._pending: dict[int, asyncio.Future] = dict()

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, command_id: int) -> bool:
        return command_id in self._pending

    def allocate(self) -> tuple[int, asyncio.Future]:
        command_id = self._next_id
        self._next_id += 1

        if command_id in self._pending:
            logging.error(f"{self._name}: command-{command_id} is already pending")
            raise CommandIdCollision(command_id)

        future = asyncio.get_running_loop().create_future()
        self._pending[command_id] = future
        return command_id, future

    def resolve(self, command_id: int, message: dict) -> bool:
        future = self._pending.pop(command_id, None)
        if future is None:
            logging.warning(f"{self._name}: received response to unknown command-{command_id}")
            return False
        if not future.done():
            future.set_result(message)
        return True

    def reject(self, command_id: int, error: BaseException) -> bool:
        future = self._pending.pop(command_id, None)
        if future is None:
            return False
        if not future.done():
            future.set_exception(error)
        return True

    def abandon_all(self) -> int:
        """
        Drops every pending command without settling its future.
        Callers waiting on those futures need their own deadline.
        """
        abandoned = len(self._pending)
        if abandoned:
            logging.debug(f"{self._name}: abandoning {abandoned} pending command(s)")
        self._pending.clear()
        return abandoned


def parse_command_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None
