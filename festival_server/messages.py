"""
Wire messages exchanged over the group WebSocket

Every frame is JSON shaped as {"type": <TAG>, "payload": {...}}.
"""
import json
from dataclasses import dataclass
from typing import Union

# Inbound tags (client -> server)
JOIN_GROUP = "JOIN_GROUP"
LEAVE_GROUP = "LEAVE_GROUP"
PONG = "PONG"

# Outbound tags (server -> client)
SELECTION_ADDED = "SELECTION_ADDED"
SELECTION_REMOVED = "SELECTION_REMOVED"
MEMBER_JOINED = "MEMBER_JOINED"
MEMBER_LEFT = "MEMBER_LEFT"
PING = "PING"


class MalformedMessage(ValueError):
    """Inbound frame that cannot be understood"""


@dataclass(frozen=True)
class JoinGroup:
    group_id: int


@dataclass(frozen=True)
class LeaveGroup:
    group_id: int


@dataclass(frozen=True)
class HeartbeatAck:
    pass


@dataclass(frozen=True)
class Unknown:
    type: str


InboundMessage = Union[JoinGroup, LeaveGroup, HeartbeatAck, Unknown]


def _group_id(payload) -> int:
    if not isinstance(payload, dict):
        raise MalformedMessage("payload must be an object")
    group_id = payload.get("groupId")
    # bool is an int subclass and never a valid id
    if not isinstance(group_id, int) or isinstance(group_id, bool):
        raise MalformedMessage("payload.groupId must be an integer")
    return group_id


def parse_message(raw: str) -> InboundMessage:
    """
    Decode one inbound text frame

    Raises:
        MalformedMessage: not JSON, not an object, or a known tag with a bad payload
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessage(f"invalid JSON: {e}")

    if not isinstance(data, dict):
        raise MalformedMessage("message must be an object")

    kind = data.get("type")
    if kind == JOIN_GROUP:
        return JoinGroup(_group_id(data.get("payload")))
    if kind == LEAVE_GROUP:
        return LeaveGroup(_group_id(data.get("payload")))
    if kind == PONG:
        return HeartbeatAck()
    return Unknown(str(kind))


def encode(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"))


def _event(kind: str, **payload) -> dict:
    return {"type": kind, "payload": payload}


def selection_added(user_id: int, act_id: int, group_id: int, user_name: str, priority: int) -> dict:
    return _event(SELECTION_ADDED, userId=user_id, actId=act_id, groupId=group_id,
                  userName=user_name, priority=priority)


def selection_removed(user_id: int, act_id: int, group_id: int) -> dict:
    return _event(SELECTION_REMOVED, userId=user_id, actId=act_id, groupId=group_id)


def member_joined(group_id: int, user: dict) -> dict:
    return _event(MEMBER_JOINED, groupId=group_id, user=user)


def member_left(group_id: int, user_id: int) -> dict:
    return _event(MEMBER_LEFT, groupId=group_id, userId=user_id)


def ping() -> dict:
    return _event(PING)
