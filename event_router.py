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
import enum
import inspect
import json
import logging
from typing import Callable, Optional, Union

from command_correlator import CommandCorrelator, parse_command_id
from constants import CONNECTION_SUCCEEDED_MARKER


class EventEmitter:
    """
    Named handler lists. Handlers run synchronously in registration order; a handler returning an awaitable has it
    scheduled as a task.
    """

    def __init__(self, name: str = "emitter"):
        self._name = name
        self._handlers: dict[str, list[Callable]] = dict()
        self._tasks: set[asyncio.Future] = set()

    def on(self, event: str, handler: Callable) -> None:
        handlers = self._handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: Optional[Callable] = None) -> None:
        if event not in self._handlers:
            return
        if handler is None:
            del self._handlers[event]
            return
        handlers = self._handlers[event]
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            del self._handlers[event]

    def remove_all(self) -> None:
        self._handlers.clear()

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is None:
            return sum(len(handlers) for handlers in self._handlers.values())
        return len(self._handlers.get(event, []))

    def event_names(self) -> list[str]:
        return list(self._handlers)

    def emit(self, event: str, *args) -> int:
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            try:
                result = handler(*args)
            except Exception as e:
                logging.error(f"{self._name}: handler for {event} raised")
                logging.exception(e)
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)
        return len(handlers)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logging.error(f"{self._name}: async handler raised", exc_info=error)


class FrameKind(enum.Enum):
    HANDSHAKE = "handshake"
    COMMAND_RESPONSE = "command_response"
    EVENT = "event"
    INVALID = "invalid"


def event_name(message: dict) -> str:
    if message.get("eventType") is None:
        return f"{message['type']}"
    return f"{message['type']}/{message['eventType']}"


def is_handshake_success(message: dict) -> bool:
    data = message.get("data")
    return (message.get("type") == "SystemMessage"
            and message.get("eventType") == "InfoLog"
            and isinstance(data, str)
            and data.startswith(CONNECTION_SUCCEEDED_MARKER))


def classify(message: dict, connecting: bool) -> FrameKind:
    if "commandId" in message:
        return FrameKind.COMMAND_RESPONSE
    if "type" not in message:
        return FrameKind.INVALID
    # the success log only means "open" before the connection is open
    if connecting and is_handshake_success(message):
        return FrameKind.HANDSHAKE
    return FrameKind.EVENT


class EventRouter:
    """
    Decodes inbound console frames and hands each one to exactly one place: the command correlator, the "open"
    lifecycle signal, or the subscription callbacks.
    """

    def __init__(self, correlator: CommandCorrelator, events: EventEmitter, signals: EventEmitter,
                 name: str = "console"):
        self._correlator = correlator
        self._events = events
        self._signals = signals
        self._name = name

    def route_frame(self, data: Union[str, bytes], connecting: bool) -> FrameKind:
        if isinstance(data, (bytes, bytearray, memoryview)):
            logging.error(f"{self._name} received binary data, dropping it")
            logging.debug(f"{self._name} binary frame: {bytes(data)!r}")
            return FrameKind.INVALID

        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            logging.error(f"{self._name} sent non-JSON data, dropping it")
            logging.exception(e)
            return FrameKind.INVALID

        if not isinstance(message, dict):
            logging.error(f"{self._name} sent a frame that is not an object: {message!r}")
            return FrameKind.INVALID

        return self.route(message, connecting)

    def route(self, message: dict, connecting: bool) -> FrameKind:
        kind = classify(message, connecting)

        if kind is FrameKind.COMMAND_RESPONSE:
            command_id = parse_command_id(message["commandId"])
            if command_id is None:
                logging.error(f"{self._name} sent a response with invalid commandId {message['commandId']!r}")
                return FrameKind.INVALID
            logging.debug(f"{self._name} received command-{command_id} message: {message}")
            self._correlator.resolve(command_id, message)

        elif kind is FrameKind.HANDSHAKE:
            logging.debug(f"{self._name} received connection success message")
            self._signals.emit("open")

        elif kind is FrameKind.EVENT:
            name = event_name(message)
            logging.debug(f"{self._name} received {name} message: {message}")
            self._events.emit(name, message)

        else:
            logging.error(f"{self._name} sent a frame with neither commandId nor type: {message}")

        return kind
