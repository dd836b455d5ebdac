"""Chat runtime adapters."""
from .base import (
    Envelope,
    Listener,
    ListenerType,
    Message,
    ReceiveContext,
    Response,
    Robot,
    User,
    to_regex,
)
from .memory import InMemoryRobot, SentMessage

__all__ = [
    "Envelope",
    "Listener",
    "ListenerType",
    "Message",
    "ReceiveContext",
    "Response",
    "Robot",
    "User",
    "to_regex",
    "InMemoryRobot",
    "SentMessage",
]
