"""Shared fixtures: every test runs against the in-memory backend."""

import asyncio
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from jose import jwt

from social_hub.core.config import settings
from social_hub.core.notification_hub import NotificationHub
from social_hub.schemas import NotificationCreate, ProfileRead
from social_hub.services.memory_services import (
    InMemoryFriendshipStore,
    InMemoryNotificationStore,
    InMemoryUserDirectory,
)
from social_hub.services.relationship_service import RelationshipService

PROFILES = [
    ProfileRead(id="u1", username="alice", display_name="Alice", level=3),
    ProfileRead(id="u2", username="bob", display_name="Bob", level=5),
    ProfileRead(id="u3", username="carol", display_name="Carol", level=1),
    ProfileRead(id="u4", username="Alicia_K", display_name="Alicia", level=2),
]


async def settle(rounds: int = 5):
    """Let queued callbacks and woken readers run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def info_notification(recipient_id: str = "u2", title: str = "Heads up") -> NotificationCreate:
    return NotificationCreate(
        recipient_id=recipient_id,
        notification_type="info",
        title=title,
        message="Something happened.",
    )


@pytest.fixture
def hub() -> NotificationHub:
    return NotificationHub()


@pytest.fixture
def friendship_store() -> InMemoryFriendshipStore:
    return InMemoryFriendshipStore()


@pytest.fixture
def notification_store(hub) -> InMemoryNotificationStore:
    return InMemoryNotificationStore(publisher=hub)


@pytest.fixture
def user_directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory(PROFILES)


@pytest.fixture
def relationship_service(friendship_store, notification_store, user_directory) -> RelationshipService:
    return RelationshipService(friendship_store, notification_store, user_directory, search_limit=10)


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from social_hub.main import app

    with TestClient(app) as test_client:
        for profile in PROFILES:
            test_client.app.state.services.user_directory.add_profile(profile)
        yield test_client


def make_token(user_id: str, expires_delta: timedelta = timedelta(minutes=30)) -> str:
    """Stands in for the identity provider that mints bearer tokens."""
    claims = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_delta}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}
