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
import json
import logging
import re
from typing import Callable, Optional, Union

import websockets.exceptions
from websockets.asyncio.client import connect

from command_correlator import CommandCorrelator
from connection_policy import ConnectionState
from constants import CONSOLE_OPEN_TIMEOUT, CONSOLE_PING_INTERVAL, SUBSCRIPTION_EVENTS
from event_router import EventEmitter, EventRouter

SUBSCRIPTION_COMMAND = re.compile(r"^(websocket )?(un)?subscribe", re.IGNORECASE)

LIFECYCLE_SIGNALS = ("open", "close", "error")


class ConsoleError(Exception): pass


class ConsoleWriteError(ConsoleError): pass


class SubscriptionError(ConsoleError): pass


class ConsoleConnection:
    """
    One websocket to one server's console.

    Lifecycle signals, registered with ``on()``:
      - ``open()``: the console accepted the token. Only fires while the server is connecting.
      - ``close(code, reason)``: the socket closed, for whatever reason. Fires once.
      - ``error(exception)``: transport failure. Does not close anything by itself.

    Pings are answered by the websocket library and never surface here.
    """

    def __init__(self, server, address: str, port: int, token: str,
                 open_timeout: float = CONSOLE_OPEN_TIMEOUT,
                 ping_interval: Optional[float] = CONSOLE_PING_INTERVAL,
                 connector: Callable = connect):
        self.server = server  # anything with .id, .name and .state
        self.subscribed_events: list[str] = []
        self._uri = f"ws://{address}:{port}"
        self._token = token
        self._open_timeout = open_timeout
        self._ping_interval = ping_interval or None
        self._connector = connector
        self._correlator = CommandCorrelator(self._label)
        self._events = EventEmitter(f"{self._label} subscriptions")
        self._signals = EventEmitter(f"{self._label} signals")
        self._router = EventRouter(self._correlator, self._events, self._signals, self._label)
        self._websocket = None
        self._reader_task: Optional[asyncio.Task] = None
        self._closed = False
        self._disposed = False

    @property
    def _label(self) -> str:
        return f"console {self.server.id} ({self.server.name})"

    @property
    def is_open(self) -> bool:
        return self._websocket is not None

    @property
    def pending_commands(self) -> int:
        return self._correlator.pending_count

    def on(self, signal: str, handler: Callable) -> None:
        if signal not in LIFECYCLE_SIGNALS:
            raise ValueError(f"Unknown console signal {signal}")
        self._signals.on(signal, handler)

    def off(self, signal: str, handler: Optional[Callable] = None) -> None:
        self._signals.off(signal, handler)

    def callback_count(self, event: Optional[str] = None) -> int:
        if event is None:
            return self._events.listener_count()
        return self._events.listener_count(f"Subscription/{event}")

    def open(self) -> asyncio.Task:
        if self._reader_task is None:
            logging.debug(f"Opening {self._label} at {self._uri}")
            self._reader_task = asyncio.create_task(self._run())
        return self._reader_task

    async def _run(self):
        code, reason = None, None
        try:
            async with self._connector(self._uri, open_timeout=self._open_timeout,
                                       ping_interval=self._ping_interval) as websocket:
                self._websocket = websocket
                logging.debug(f"{self._label} opened")
                await self._authenticate(websocket)
                try:
                    async for data in websocket:
                        self._handle_message(data)
                finally:
                    code, reason = websocket.close_code, websocket.close_reason
        except websockets.exceptions.ConnectionClosedError as e:
            self._handle_error(e)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.InvalidHandshake,
                websockets.exceptions.InvalidURI) as e:
            self._handle_error(e)
        except Exception as e:
            logging.exception(e)
            self._handle_error(e)
        finally:
            self._websocket = None
            self._handle_close(code, reason)

    async def _authenticate(self, websocket):
        try:
            await websocket.send(self._token)
        except (websockets.exceptions.ConnectionClosed, OSError) as e:
            logging.error(f"Couldn't authenticate {self._label} connection.")
            logging.exception(e)
            return
        logging.debug(f"Authenticated {self._label} connection.")

    def _handle_message(self, data: Union[str, bytes]):
        connecting = self.server.state == ConnectionState.CONNECTING
        return self._router.route_frame(data, connecting)

    def _handle_error(self, error: BaseException):
        logging.error(f"An error occurred on {self._label}: {error!r}")
        self._signals.emit("error", error)

    def _handle_close(self, code: Optional[int], reason: Optional[str]):
        if self._closed:
            return
        self._closed = True
        logging.debug(f"{self._label} is closing with code {code}: {reason}.")
        self._correlator.abandon_all()
        self._signals.emit("close", code, reason)

    async def send(self, command: str) -> dict:
        """
        Sends a console command and waits for its response. Use subscribe() and unsubscribe() for events.
        Has no deadline of its own; wrap in asyncio.wait_for() if the console may go quiet.
        """
        if SUBSCRIPTION_COMMAND.match(command):
            logging.error(f"Do not use send() to (un)subscribe to events on {self._label}. "
                          f"Please use subscribe() or unsubscribe() instead.")
            raise SubscriptionError(command)

        return await self._command(command)

    async def _command(self, command: str) -> dict:
        command_id, future = self._correlator.allocate()
        message = {"id": command_id, "content": command}
        logging.debug(f"Sending command-{command_id} to {self._label}: {message}")

        if self._websocket is None:
            logging.error(f"Couldn't send command-{command_id} to {self._label}: not open")
            self._correlator.reject(command_id, ConsoleWriteError(f"{self._label} is not open"))
            return await future

        try:
            await self._websocket.send(json.dumps(message))
        except (websockets.exceptions.ConnectionClosed, OSError) as e:
            logging.error(f"Couldn't send command-{command_id} to {self._label}: {e!r}")
            self._correlator.reject(command_id, ConsoleWriteError(str(e)))

        return await future

    async def subscribe(self, event: str, callback: Callable) -> dict:
        if event in self.subscribed_events:
            logging.error(f"Already subscribed to {event} on {self._label}.")
            raise SubscriptionError(event)
        if event not in SUBSCRIPTION_EVENTS:
            logging.warning(f"{event} is not a known console event, subscribing anyway.")

        logging.info(f"Subscribing to {event} on {self._label}.")
        self.subscribed_events.append(event)
        self._events.on(f"Subscription/{event}", callback)

        return await self._command(f"websocket subscribe {event}")

    async def unsubscribe(self, event: str) -> dict:
        if event not in self.subscribed_events:
            logging.error(f"Subscription to {event} does not exist on {self._label}.")
            raise SubscriptionError(event)

        logging.info(f"Unsubscribing from {event} on {self._label}.")
        self.subscribed_events.remove(event)
        self._events.off(f"Subscription/{event}")

        return await self._command(f"websocket unsubscribe {event}")

    async def dispose(self):
        """
        Removes every callback and closes the websocket. Safe to call more than once.
        """
        if self._disposed:
            return
        self._disposed = True
        logging.debug(f"Disposing {self._label}")

        self._events.remove_all()
        self._signals.remove_all()
        self.subscribed_events.clear()
        self._correlator.abandon_all()

        websocket = self._websocket
        if websocket is not None:
            try:
                await websocket.close()
            except (websockets.exceptions.ConnectionClosed, OSError) as e:
                logging.debug(f"{self._label} did not close cleanly: {e!r}")

        task = self._reader_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            # asyncio.wait never raises the reader's cancellation, only our own
            await asyncio.wait([task])
