"""
Shared fakes for the console keeper tests.

The websocket, the metadata service and the push-notification bus are replaced by in-memory doubles that record
what the code under test did with them.
"""

import asyncio
import datetime
import json
from types import SimpleNamespace
from typing import Optional

import pytest

from collaborators import MetadataService, PushMessage, SubscriptionBus
from connection_policy import ConnectionState
from schemas import ConnectionDetails, GroupInfo, GroupMemberInfo, GroupRole, ServerInfo

_CLOSED = object()

CONSOLE_ADDRESS = "10.0.0.1"
CONSOLE_PORT = 1757
CONSOLE_TOKEN = "console-token"


async def settle(rounds: int = 10):
    """Let every ready task run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def fresh_ping() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1)


def stale_ping() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(hours=1)


def handshake_frame() -> str:
    return json.dumps({
        "type": "SystemMessage",
        "eventType": "InfoLog",
        "data": "Connection Succeeded, Authenticated as: 1234 - bot",
    })


class FakeWebSocket:
    def __init__(self):
        self.sent: list = []
        self.closed = False
        self.fail_send = False
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self.exit_gate: Optional[asyncio.Event] = None
        self._inbound: asyncio.Queue = asyncio.Queue()

    @property
    def commands(self) -> list[dict]:
        """Every JSON command sent after the token."""
        return [json.loads(data) for data in self.sent[1:]]

    def feed(self, data):
        self._inbound.put_nowait(data)

    def respond(self, command_id: int, **payload):
        self.feed(json.dumps({"commandId": command_id, **payload}))

    def finish(self, code: int = 1000, reason: str = ""):
        self.close_code = code
        self.close_reason = reason
        self._inbound.put_nowait(_CLOSED)

    async def send(self, data):
        if self.fail_send:
            raise OSError("broken pipe")
        self.sent.append(data)

    async def close(self):
        self.closed = True
        if self.close_code is None:
            self.close_code = 1000
            self.close_reason = ""
        self._inbound.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.exit_gate is not None:
            await self.exit_gate.wait()
        await self.close()
        return False


class FakeConnector:
    def __init__(self, websocket: Optional[FakeWebSocket] = None, error: Optional[BaseException] = None):
        self.websocket = websocket
        self.error = error
        self.calls: list = []

    def __call__(self, uri, **kwargs):
        self.calls.append((uri, kwargs))
        if self.error is not None:
            raise self.error
        return self.websocket


class FakeApi(MetadataService):
    def __init__(self):
        self.groups: dict[int, GroupInfo] = dict()
        self.members: dict[tuple[int, int], GroupMemberInfo] = dict()
        self.statuses: dict[int, ServerInfo] = dict()
        self.details: dict[int, ConnectionDetails] = dict()
        self.joined: Optional[list] = []
        self.details_gate: Optional[asyncio.Event] = None
        self.member_gate: Optional[asyncio.Event] = None
        self.calls: list = []

    async def get_group_info(self, group_id):
        self.calls.append(("get_group_info", group_id))
        return self.groups.get(group_id)

    async def get_group_member(self, group_id, user_id):
        self.calls.append(("get_group_member", group_id, user_id))
        if self.member_gate is not None:
            await self.member_gate.wait()
        return self.members.get((group_id, user_id))

    async def get_server_info(self, server_id):
        self.calls.append(("get_server_info", server_id))
        return self.statuses.get(server_id)

    async def get_server_connection_details(self, server_id):
        self.calls.append(("get_server_connection_details", server_id))
        if self.details_gate is not None:
            await self.details_gate.wait()
        return self.details.get(server_id)

    async def get_joined_groups(self):
        self.calls.append(("get_joined_groups",))
        return self.joined

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeSubscriptionBus(SubscriptionBus):
    def __init__(self):
        self.handlers: dict[tuple[str, str], object] = dict()
        self.unsubscribed: list[tuple[str, str]] = []

    async def subscribe(self, event, key, handler):
        self.handlers[(event, key)] = handler

    async def unsubscribe(self, event, key):
        self.unsubscribed.append((event, key))
        self.handlers.pop((event, key), None)

    async def deliver(self, event: str, key: str, content):
        handler = self.handlers[(event, key)]
        result = handler(PushMessage(event, key, content))
        if asyncio.iscoroutine(result):
            await result


def make_group(group_id: int = 100, server_ids=(1,), console_role: bool = True) -> GroupInfo:
    roles = [
        GroupRole(10, "Member", ["Invite"]),
        GroupRole(20, "Moderator", ["Invite", "Console"] if console_role else ["Invite"]),
    ]
    servers = [ServerInfo(server_id, f"Server {server_id}", None) for server_id in server_ids]
    return GroupInfo(group_id, f"Group {group_id}", roles, servers)


@pytest.fixture
def console_server():
    return SimpleNamespace(id=1, name="Test Server", group_id=100, state=ConnectionState.CONNECTING)


@pytest.fixture
def api():
    api = FakeApi()
    api.details[1] = ConnectionDetails(True, CONSOLE_ADDRESS, CONSOLE_PORT, CONSOLE_TOKEN)
    return api


@pytest.fixture
def bus():
    return FakeSubscriptionBus()
