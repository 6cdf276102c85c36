"""
Tests for parsing platform records.
"""

import datetime

import pytest
import voluptuous.error

from schemas import ConnectionDetails, GroupInfo, GroupMemberInfo, ServerInfo, get_permissions


class TestParse:
    """Records as the platform sends them."""

    def test_group_info(self):
        group = GroupInfo.parse({
            "id": 100,
            "name": "Test Group",
            "description": "ignored",
            "roles": [{"role_id": 20, "name": "Moderator", "permissions": ["Invite", "Console"]}],
            "servers": [{"id": 1, "name": "Server 1", "online_ping": "2024-05-01T12:00:00.000Z"}],
        })

        assert group.id == 100
        assert group.roles[0].permissions == ["Invite", "Console"]
        assert group.servers[0].online_ping == datetime.datetime(2024, 5, 1, 12, tzinfo=datetime.timezone.utc)

    def test_missing_optional_fields(self):
        group = GroupInfo.parse({"id": 100, "roles": None, "servers": None})
        server = ServerInfo.parse({"id": 1})

        assert group.roles == []
        assert group.servers == []
        assert server.online_ping is None

    def test_member(self):
        member = GroupMemberInfo.parse({"user_id": 555, "role_id": 20, "username": "bot"})

        assert (member.user_id, member.role_id, member.username) == (555, 20, "bot")

    def test_connection_details(self):
        details = ConnectionDetails.parse({
            "allowed": True,
            "token": "secret",
            "connection": {"address": "10.0.0.1", "websocket_port": 1757, "game_port": 1757},
        })

        assert (details.address, details.port, details.token) == ("10.0.0.1", 1757, "secret")

    def test_invalid_timestamp(self):
        with pytest.raises(voluptuous.error.Invalid):
            ServerInfo.parse({"id": 1, "online_ping": "yesterday"})


class TestPermissions:
    """Role lookup."""

    def test_role_permissions(self):
        group = GroupInfo.parse({"id": 1, "roles": [{"role_id": 20, "permissions": ["Console"]}]})

        assert get_permissions(group, GroupMemberInfo(555, 20)) == ["Console"]

    def test_unknown_role_has_none(self):
        group = GroupInfo.parse({"id": 1, "roles": [{"role_id": 20, "permissions": ["Console"]}]})

        assert get_permissions(group, GroupMemberInfo(555, 21)) == []
