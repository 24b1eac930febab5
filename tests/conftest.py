import json

import pytest

from festival_server.auth import TokenVerifier
from festival_server.hub import RoomHub
from festival_server.store import MemoryStore

SECRET = "test-secret"

SEED = {
    "users": [
        {"id": 1, "email": "alice@example.com", "displayName": "Alice"},
        {"id": 2, "email": "bob@example.com", "displayName": "Bob"},
        {"id": 3, "email": "carol@example.com", "displayName": "Carol"},
    ],
    "groups": [
        {"id": 42, "uuid": "invite-42", "name": "Main crew", "creatorId": 1, "memberIds": [1, 2], "eventIds": [7]},
        {"id": 43, "uuid": "invite-43", "name": "Other crew", "creatorId": 3, "memberIds": [3], "eventIds": [8]},
    ],
    "stages": [
        {"id": 1, "name": "Main Stage"},
        {"id": 2, "name": "Tent"},
    ],
    "acts": [
        {"id": 100, "eventId": 7, "dayId": 1, "stageId": 1, "name": "Opener", "startTime": "10:00", "endTime": "11:30"},
        {"id": 101, "eventId": 7, "dayId": 1, "stageId": 2, "name": "Second", "startTime": "11:00", "endTime": "12:00"},
        {"id": 102, "eventId": 7, "dayId": 1, "stageId": 1, "name": "Third", "startTime": "12:00", "endTime": "13:00"},
        {"id": 103, "eventId": 7, "dayId": 2, "stageId": 1, "name": "Late", "startTime": "23:00", "endTime": "25:30"},
        {"id": 104, "eventId": 7, "dayId": 2, "stageId": 2, "name": "Later", "startTime": "24:30", "endTime": "26:00"},
        {"id": 200, "eventId": 8, "dayId": 5, "stageId": 1, "name": "Elsewhere", "startTime": "18:00", "endTime": "19:00"},
    ],
}


class FakeConnection:
    """Stands in for a WebSocketResponse in hub tests"""

    def __init__(self, closed=False):
        self.closed = closed
        self.sent = []
        self.close_calls = []

    async def send_str(self, data):
        self.sent.append(data)

    async def close(self, code=1000, message=b""):
        self.closed = True
        self.close_calls.append((code, message))
        return True


def drain(session):
    """Pop every queued frame off a session's outbox, decoding JSON frames"""
    frames = []
    while not session.outbox.empty():
        raw = session.outbox.get_nowait()
        try:
            frames.append(json.loads(raw))
        except ValueError:
            frames.append(raw)
    return frames


@pytest.fixture
def verifier():
    return TokenVerifier(SECRET)


@pytest.fixture
def hub(verifier):
    return RoomHub(verifier, heartbeat_interval=0.05)


@pytest.fixture
def connect(hub, verifier):
    """Open an authenticated session for a user id on a fake connection"""

    def _connect(user_id, closed=False):
        return hub.authenticate(FakeConnection(closed=closed), verifier.mint(user_id))

    return _connect


@pytest.fixture
def store():
    return MemoryStore.from_dict(SEED)


@pytest.fixture
def auth_header(verifier):
    def _header(user_id):
        return {"Authorization": f"Bearer {verifier.mint(user_id)}"}

    return _header
