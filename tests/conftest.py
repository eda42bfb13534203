"""Test configuration and fixtures."""

import os
import tempfile

# Set environment variables before importing application code
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["CREATE_INDEXES"] = "false"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="bugtracker-uploads-")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from bugtracker.dependencies import get_attachment_store, get_db, get_event_bus
from bugtracker.main import app
from bugtracker.realtime import EventBus
from bugtracker.storage import AttachmentStore


class RecordingSubscriber:
    """Stand-in for a WebSocket connection that keeps what it is sent."""

    def __init__(self, fail: bool = False):
        self.messages = []
        self.fail = fail

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("socket closed")
        self.messages.append(data)


@pytest.fixture
def mongo():
    """A fresh in-memory MongoDB database per test."""
    return AsyncMongoMockClient()["bugtracker_test"]


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def store(tmp_path) -> AttachmentStore:
    return AttachmentStore(upload_dir=str(tmp_path / "uploads"), url_prefix="/uploads", max_bytes=1024)


@pytest.fixture
def client(mongo, bus, store):
    """TestClient wired to the in-memory database, bus and blob store."""
    app.dependency_overrides[get_db] = lambda: mongo
    app.dependency_overrides[get_event_bus] = lambda: bus
    app.dependency_overrides[get_attachment_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(client):
    """Register a user over HTTP; returns (user_id, auth headers, email)."""
    counter = {"n": 0}

    def _make(name: str = None):
        counter["n"] += 1
        name = name or f"user{counter['n']}"
        email = f"{name.lower()}@example.com"
        response = client.post(
            "/auth/register",
            json={"name": name, "email": email, "password": "secret123"},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["_id"], {"Authorization": f"Bearer {body['token']}"}, email

    return _make


async def insert_user(mongo, name: str) -> dict:
    user = {"name": name, "email": f"{name.lower()}@example.com", "password": "not-a-hash"}
    result = await mongo.users.insert_one(user)
    user["_id"] = result.inserted_id
    return user
