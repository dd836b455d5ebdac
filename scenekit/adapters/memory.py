"""
In-process chat runtime.

Keeps listeners and outbound messages in memory. Used in tests and by
applications that feed messages to the engine themselves, e.g. from a
websocket or a console loop.
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Union

import structlog

from ..middleware import Middleware, MiddlewareHandler, maybe_await
from .base import (
    Envelope,
    Listener,
    ListenerCallback,
    ListenerType,
    Message,
    ReceiveContext,
    Response,
    Robot,
    User,
    to_regex,
)

logger = structlog.get_logger(__name__)


@dataclass
class SentMessage:
    """A message delivered by the runtime."""

    kind: str  # "send", "reply" or "private"
    room: str
    user: User
    text: str


class InMemoryRobot(Robot):
    """
    Chat runtime that delivers to a list.

    ``receive()`` runs the receive middleware, then every listener whose
    pattern matches, in registration order, until the message is finished.
    """

    def __init__(self, name: str = "bot", alias: Optional[str] = None) -> None:
        self.name = name
        self.alias = alias
        self.listeners: List[Listener] = []
        self.sent: List[SentMessage] = []
        self.middleware: Middleware[ReceiveContext] = Middleware("receive")

    def hear(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenerCallback,
        listener_id: Optional[str] = None,
    ) -> Listener:
        listener = Listener(ListenerType.HEAR, to_regex(pattern), callback, listener_id)
        self.listeners.append(listener)
        return listener

    def respond(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenerCallback,
        listener_id: Optional[str] = None,
    ) -> Listener:
        listener = Listener(
            ListenerType.RESPOND,
            self.respond_pattern(to_regex(pattern)),
            callback,
            listener_id,
        )
        self.listeners.append(listener)
        return listener

    def respond_pattern(self, pattern: "re.Pattern[str]") -> "re.Pattern[str]":
        """Wrap pattern so it only matches text addressed to the bot by name or alias."""
        names = [re.escape(self.name)]
        if self.alias:
            names.append(re.escape(self.alias))
        source = pattern.pattern[1:] if pattern.pattern.startswith("^") else pattern.pattern
        return re.compile(
            rf"^\s*@?(?:{'|'.join(names)})[:,]?\s*(?:{source})",
            pattern.flags | re.IGNORECASE,
        )

    def receive_middleware(self, handler: MiddlewareHandler) -> None:
        self.middleware.register(handler)

    async def receive(self, message: Message) -> bool:
        """
        Process an inbound message.

        Returns:
            True if at least one listener was called
        """
        context = ReceiveContext(response=Response(self, message))
        if not await self.middleware.execute(context):
            return False

        handled = False
        for listener in list(self.listeners):
            if message.finished:
                break
            match = listener.pattern.search(message.text)
            if not match:
                continue
            handled = True
            try:
                await maybe_await(listener.callback(Response(self, message, match)))
            except Exception:
                logger.exception(
                    "listener_failed",
                    listener_id=listener.listener_id,
                    pattern=listener.pattern.pattern,
                )
        return handled

    async def send(self, envelope: Envelope, *strings: str) -> None:
        for text in strings:
            self.sent.append(SentMessage("send", envelope.room, envelope.user, text))

    async def reply(self, envelope: Envelope, *strings: str) -> None:
        for text in strings:
            self.sent.append(
                SentMessage("reply", envelope.room, envelope.user, f"@{envelope.user.name or envelope.user.id} {text}")
            )

    async def send_private(self, envelope: Envelope, *strings: str) -> None:
        for text in strings:
            self.sent.append(SentMessage("private", envelope.user.id, envelope.user, text))

    def texts(self) -> List[str]:
        """Text of every delivered message, in order."""
        return [sent.text for sent in self.sent]
