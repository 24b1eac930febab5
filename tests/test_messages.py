import json

import pytest

from festival_server import messages
from festival_server.messages import (
    HeartbeatAck, JoinGroup, LeaveGroup, MalformedMessage, Unknown, parse_message,
)


def test_parse_join_and_leave():
    assert parse_message('{"type": "JOIN_GROUP", "payload": {"groupId": 42}}') == JoinGroup(42)
    assert parse_message('{"type": "LEAVE_GROUP", "payload": {"groupId": 42}}') == LeaveGroup(42)


def test_parse_pong_is_heartbeat_ack():
    assert parse_message('{"type": "PONG", "payload": {}}') == HeartbeatAck()
    assert parse_message('{"type": "PONG"}') == HeartbeatAck()


def test_unknown_tag_is_not_an_error():
    assert parse_message('{"type": "DANCE", "payload": {}}') == Unknown("DANCE")
    assert parse_message('{"payload": {}}') == Unknown("None")


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2]",
    '{"type": "JOIN_GROUP"}',
    '{"type": "JOIN_GROUP", "payload": {"groupId": "42"}}',
    '{"type": "LEAVE_GROUP", "payload": {"groupId": true}}',
    '{"type": "LEAVE_GROUP", "payload": []}',
])
def test_malformed_frames_raise(raw):
    with pytest.raises(MalformedMessage):
        parse_message(raw)


def test_outbound_event_shapes():
    added = messages.selection_added(1, 100, 42, "Alice", 2)
    assert added == {
        "type": "SELECTION_ADDED",
        "payload": {"userId": 1, "actId": 100, "groupId": 42, "userName": "Alice", "priority": 2},
    }
    assert messages.selection_removed(1, 100, 42)["payload"] == {"userId": 1, "actId": 100, "groupId": 42}
    assert messages.member_left(42, 3) == {"type": "MEMBER_LEFT", "payload": {"groupId": 42, "userId": 3}}
    assert messages.ping() == {"type": "PING", "payload": {}}


def test_encode_is_compact_json():
    frame = messages.encode(messages.member_joined(42, {"id": 3}))
    assert " " not in frame
    assert json.loads(frame)["payload"]["user"] == {"id": 3}
