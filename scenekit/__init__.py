"""
scenekit
========

Multi-turn conversations for chat bots.

- Dialogue: prompts, reply branches, transcript and timeout per conversation
- Scene: engages users or rooms in dialogue, isolating them from other listeners
- Middleware: continue/halt handler chain used to gate scene entry
"""

from .adapters import InMemoryRobot, Message, Response, Robot, User
from .config import DialogueConfig, SceneConfig, SceneScope, Settings, get_settings
from .dialogue import Dialogue
from .events import (
    EndEvent,
    EnterEvent,
    Event,
    EventEmitter,
    ExitEvent,
    MatchEvent,
    MismatchEvent,
    SendEvent,
    Subscription,
    TimeoutEvent,
)
from .exceptions import AlreadyEngagedError, ConfigurationError, ScenekitError, UsageError
from .keys import DirectKey, ParticipantKey, RoomKey, UserKey
from .logging import configure_logging
from .middleware import Middleware, MiddlewareAction
from .path import Branch, Path, TranscriptAction, TranscriptEntry
from .scene import EnterContext, Scene

__version__ = "1.0.0"

__all__ = [
    # Core
    "Dialogue",
    "Scene",
    "EnterContext",
    "Path",
    "Branch",
    "TranscriptAction",
    "TranscriptEntry",
    "Middleware",
    "MiddlewareAction",
    # Keys
    "ParticipantKey",
    "UserKey",
    "RoomKey",
    "DirectKey",
    # Events
    "Event",
    "EventEmitter",
    "Subscription",
    "MatchEvent",
    "MismatchEvent",
    "SendEvent",
    "TimeoutEvent",
    "EndEvent",
    "EnterEvent",
    "ExitEvent",
    # Runtime
    "Robot",
    "InMemoryRobot",
    "Message",
    "Response",
    "User",
    # Config
    "DialogueConfig",
    "SceneConfig",
    "SceneScope",
    "Settings",
    "get_settings",
    "configure_logging",
    # Errors
    "ScenekitError",
    "ConfigurationError",
    "UsageError",
    "AlreadyEngagedError",
]
