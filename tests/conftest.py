"""Shared pytest fixtures for testing."""

import asyncio
import os
from typing import Awaitable, Callable

import pytest

# Set test environment before settings are first read
os.environ["ENVIRONMENT"] = "test"

from scenekit.adapters import InMemoryRobot, Message, Response, User


# =============================================================================
# Runtime Fixtures
# =============================================================================


@pytest.fixture
def settle() -> Callable[..., Awaitable[None]]:
    """Coroutine that lets scheduled callbacks and tasks run."""

    async def wait(delay: float = 0.01) -> None:
        await asyncio.sleep(delay)

    return wait


@pytest.fixture
def robot() -> InMemoryRobot:
    """Create an in-memory chat runtime."""
    return InMemoryRobot(name="bot")


@pytest.fixture
def user() -> User:
    """Create a test user."""
    return User(id="u1", name="jon")


@pytest.fixture
def other_user() -> User:
    """Create a second test user."""
    return User(id="u2", name="ann")


@pytest.fixture
def make_message(user: User) -> Callable[..., Message]:
    """Factory for inbound messages, from the test user in the lobby by default."""

    def factory(text: str, sender: User = None, room: str = "lobby") -> Message:
        return Message(user=sender or user, text=text, room=room)

    return factory


@pytest.fixture
def make_response(robot: InMemoryRobot, make_message) -> Callable[..., Response]:
    """Factory for responses to inbound messages."""

    def factory(text: str = "", sender: User = None, room: str = "lobby") -> Response:
        return Response(robot, make_message(text, sender=sender, room=room))

    return factory
