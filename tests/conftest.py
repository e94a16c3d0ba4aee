"""
Shared fixtures: an in-memory meeting store and a recording WebSocket double.
"""

import json
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from app import create_app
from relay import RoomRelay


class FakeBackend:
    """In-memory stand-in for RedisBackend with the same method surface."""

    def __init__(self):
        self.meetings = {}
        self.participants = {}
        self._next_id = 0

    def ping(self):
        return True

    def create_meeting(self, slug, title=None, owner_id=None):
        if slug in self.meetings:
            return self.meetings[slug], False
        self._next_id += 1
        self.meetings[slug] = {
            "id": self._next_id,
            "slug": slug,
            "title": title,
            "owner_id": str(owner_id) if owner_id is not None else None,
            "created_at": datetime.now().isoformat(),
        }
        return self.meetings[slug], True

    def get_meeting_id(self, slug):
        meeting = self.meetings.get(slug)
        return meeting["id"] if meeting else None

    def get_meeting(self, slug):
        return self.meetings.get(slug)

    def add_participant(self, meeting_id, user_id=None, display_name=None):
        row = {
            "meeting_id": meeting_id,
            "user_id": user_id,
            "display_name": display_name,
            "joined_at": datetime.now().isoformat(),
        }
        self.participants.setdefault(meeting_id, []).append(row)
        return row

    def record_participant(self, slug, user_id=None, display_name=None):
        meeting_id = self.get_meeting_id(slug)
        if meeting_id is None:
            return None
        return self.add_participant(meeting_id, user_id, display_name)

    def get_participants(self, meeting_id):
        return list(self.participants.get(meeting_id, []))


class FailingBackend(FakeBackend):
    """Every store call raises, as if the database were unreachable."""

    def _fail(self, *args, **kwargs):
        raise ConnectionError("database unavailable")

    create_meeting = _fail
    get_meeting = _fail
    get_meeting_id = _fail
    record_participant = _fail
    get_participants = _fail


class FakeWebSocket:
    def __init__(self):
        self.sent = []
        self.closed = False

    async def send_text(self, text):
        if self.closed:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))

    def events(self, name=None):
        return [frame for frame in self.sent if name is None or frame["event"] == name]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def relay(backend):
    return RoomRelay(store=backend)


@pytest.fixture
def app(backend):
    return create_app(backend=backend, cors_origins=["http://localhost:3000"])


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
