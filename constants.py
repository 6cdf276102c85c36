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

# a server whose last heartbeat is older than this is offline
SERVER_HEARTBEAT_TIMEOUT = datetime.timedelta(minutes=10)

# used in place of a missing heartbeat, so that "never seen" means offline
SERVER_HEARTBEAT_EPOCH = datetime.datetime(2022, 6, 1, tzinfo=datetime.timezone.utc)

CONSOLE_OPEN_TIMEOUT = 10.0
CONSOLE_PING_INTERVAL = 20.0

# InfoLog text sent by the console once the token has been accepted
CONNECTION_SUCCEEDED_MARKER = "Connection Succeeded"

CONSOLE_PERMISSION = "Console"

SUBSCRIPTION_EVENTS = (
    "DebugLog",
    "ErrorLog",
    "FatalLog",
    "InfoLog",
    "InventoryChanged",
    "ObjectKilled",
    "PlayerJoined",
    "PlayerKilled",
    "PlayerLeft",
    "PlayerMovedChunk",
    "PlayerStateChanged",
    "PopulationModified",
    "ProfilingData",
    "SocialTabletPlayerReported",
    "TraceLog",
    "TradeDeckUsed",
    "TrialFinished",
    "TrialStarted",
    "WarnLog",
)

# push-notification bus event kinds, one subscription each per managed group
GROUP_UPDATE = "group-update"
GROUP_MEMBER_UPDATE = "group-member-update"
GROUP_SERVER_STATUS = "group-server-status"
GROUP_SERVER_CREATE = "group-server-create"
GROUP_SERVER_DELETE = "group-server-delete"

GROUP_EVENT_KINDS = (
    GROUP_UPDATE,
    GROUP_MEMBER_UPDATE,
    GROUP_SERVER_STATUS,
    GROUP_SERVER_CREATE,
    GROUP_SERVER_DELETE,
)
