"""
Chat runtime interface.

scenekit does not deliver messages itself. It talks to a chat runtime through
the ``Robot`` interface below: listener registration, a receive middleware
hook and outbound delivery. Messages and responses are plain dataclasses so
any chat backend can be adapted to them.
"""
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..exceptions import ConfigurationError
from ..middleware import MiddlewareHandler


@dataclass(frozen=True)
class User:
    """A chat user."""

    id: str
    name: str = ""
    room: Optional[str] = None


@dataclass
class Message:
    """An inbound chat message."""

    user: User
    text: str
    room: str = ""
    id: Optional[str] = None
    finished: bool = False

    def finish(self) -> None:
        """Stop the runtime from dispatching this message to more listeners."""
        self.finished = True


@dataclass(frozen=True)
class Envelope:
    """Where an outbound message goes."""

    room: str
    user: User
    message: Optional[Message] = None


@dataclass
class Response:
    """A message being handled, with helpers to answer it."""

    robot: "Robot"
    message: Message
    match: Optional["re.Match[str]"] = None

    @property
    def envelope(self) -> Envelope:
        return Envelope(room=self.message.room, user=self.message.user, message=self.message)

    async def send(self, *strings: str) -> None:
        """Post to the room the message came from."""
        await self.robot.send(self.envelope, *strings)

    async def reply(self, *strings: str) -> None:
        """Post to the room, addressed to the user."""
        await self.robot.reply(self.envelope, *strings)

    async def send_private(self, *strings: str) -> None:
        """Send directly to the user."""
        await self.robot.send_private(self.envelope, *strings)


@dataclass
class ReceiveContext:
    """Context passed through the runtime's receive middleware."""

    response: Response
    metadata: Dict[str, Any] = field(default_factory=dict)


class ListenerType(str, Enum):
    """Listener kinds a runtime must support."""

    HEAR = "hear"        # any message in the room
    RESPOND = "respond"  # messages addressed to the bot


ListenerCallback = Callable[[Response], Union[Awaitable[Any], Any]]


def to_regex(pattern: Union[str, "re.Pattern[str]"]) -> "re.Pattern[str]":
    """
    Compile a listener or branch pattern.

    Strings in ``/expr/flags`` form keep their flags (``i``, ``m``, ``s``,
    ``x``); other strings are matched case-insensitively.

    Raises:
        ConfigurationError: if the pattern is not a string or regex, or does
            not compile
    """
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str):
        raise ConfigurationError(f"invalid pattern {pattern!r}")

    flag_map = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}
    literal = re.fullmatch(r"/(.+)/([a-z]*)", pattern, re.DOTALL)
    if literal:
        source, flags = literal.group(1), 0
        for char in literal.group(2):
            if char not in flag_map:
                raise ConfigurationError(f"invalid regex flag {char!r} in {pattern!r}")
            flags |= flag_map[char]
    else:
        source, flags = pattern, re.IGNORECASE

    try:
        return re.compile(source, flags)
    except re.error as e:
        raise ConfigurationError(f"invalid pattern {pattern!r}: {e}") from e


@dataclass
class Listener:
    """A registered listener."""

    kind: ListenerType
    pattern: "re.Pattern[str]"
    callback: ListenerCallback
    listener_id: Optional[str] = None


class Robot(ABC):
    """
    Abstract chat runtime.

    Implementations should handle:
    - Matching inbound messages to registered listeners
    - Running receive middleware before listeners
    - Delivering outbound text to rooms and users
    """

    name: str

    @abstractmethod
    def hear(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenerCallback,
        listener_id: Optional[str] = None,
    ) -> Listener:
        """Register a listener for any message matching pattern."""
        pass

    @abstractmethod
    def respond(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenerCallback,
        listener_id: Optional[str] = None,
    ) -> Listener:
        """Register a listener for messages addressed to the bot."""
        pass

    @abstractmethod
    def receive_middleware(self, handler: MiddlewareHandler) -> None:
        """Add a handler to run for every inbound message before listeners."""
        pass

    @abstractmethod
    async def send(self, envelope: Envelope, *strings: str) -> None:
        """Post strings to the envelope's room."""
        pass

    @abstractmethod
    async def reply(self, envelope: Envelope, *strings: str) -> None:
        """Post strings to the room, addressed to the envelope's user."""
        pass

    @abstractmethod
    async def send_private(self, envelope: Envelope, *strings: str) -> None:
        """Send strings directly to the envelope's user."""
        pass

    def listen(
        self,
        kind: Union[ListenerType, str],
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenerCallback,
        listener_id: Optional[str] = None,
    ) -> Listener:
        """Register a listener of the given kind."""
        try:
            kind = ListenerType(kind)
        except ValueError as e:
            raise ConfigurationError(f"invalid listener type {kind!r}") from e
        if kind == ListenerType.RESPOND:
            return self.respond(pattern, callback, listener_id)
        return self.hear(pattern, callback, listener_id)
