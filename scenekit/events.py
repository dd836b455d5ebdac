"""
Typed events emitted by dialogues and scenes.

Subscribers register for an event class, e.g. ``dialogue.on(EndEvent, fn)``,
and receive the event instance. Dispatch is synchronous and in subscription
order, so a scene sees a dialogue's end before the dialogue's ``end()``
returns.
"""

import itertools
import re
import time
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Pattern,
    Type,
    TypeVar,
)

import structlog

if TYPE_CHECKING:
    from .adapters.base import Response, User
    from .dialogue import Dialogue


logger = structlog.get_logger(__name__)


@dataclass
class Event:
    """Base for all events."""

    source: Any
    timestamp: float = field(default_factory=time.time, kw_only=True)


@dataclass
class MatchEvent(Event):
    """A message matched one of the dialogue's branches."""

    response: "Response"
    user: "User"
    text: str
    match: "re.Match[str]"
    pattern: Pattern[str]


@dataclass
class MismatchEvent(Event):
    """A message matched none of the dialogue's branches."""

    response: "Response"
    user: "User"
    text: str


@dataclass
class SendEvent(Event):
    """The dialogue sent text to its participants."""

    response: "Response"
    text: str


@dataclass
class TimeoutEvent(Event):
    """The dialogue waited too long for a reply."""

    response: "Response"


@dataclass
class EndEvent(Event):
    """The dialogue ended; ``completed`` only if its last path closed."""

    response: "Response"
    completed: bool


@dataclass
class EnterEvent(Event):
    """Participants were engaged in a new dialogue."""

    response: "Response"
    dialogue: "Dialogue"


@dataclass
class ExitEvent(Event):
    """Participants were disengaged."""

    response: "Response"
    status: str


E = TypeVar("E", bound=Event)
EventCallback = Callable[[Any], Any]


@dataclass
class Subscription:
    """Handle returned by ``EventEmitter.on``, used to detach."""

    id: int
    event_type: Type[Event]
    handler: EventCallback
    once: bool = False
    active: bool = True
    invocation_count: int = 0


class EventEmitter:
    """Minimal observer used by dialogues and scenes."""

    _ids = itertools.count(1)

    def __init__(self) -> None:
        self._subscriptions: Dict[Type[Event], List[Subscription]] = {}

    def on(
        self,
        event_type: Type[E],
        handler: Callable[[E], Any],
        once: bool = False,
    ) -> Subscription:
        """Subscribe ``handler`` to events of ``event_type``."""
        subscription = Subscription(
            id=next(self._ids),
            event_type=event_type,
            handler=handler,
            once=once,
        )
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def once(self, event_type: Type[E], handler: Callable[[E], Any]) -> Subscription:
        """Subscribe for the next event of ``event_type`` only."""
        return self.on(event_type, handler, once=True)

    def off(self, subscription: Optional[Subscription]) -> bool:
        """Detach a subscription. Returns False if it was not attached."""
        if subscription is None:
            return False
        subscriptions = self._subscriptions.get(subscription.event_type, [])
        if subscription not in subscriptions:
            return False
        subscriptions.remove(subscription)
        subscription.active = False
        return True

    def listeners(self, event_type: Type[Event]) -> List[Subscription]:
        """Active subscriptions for an event type."""
        return list(self._subscriptions.get(event_type, []))

    def emit(self, event: Event) -> int:
        """
        Deliver ``event`` to its subscribers.

        Subscribers detached while the event is being delivered are skipped.
        An exception in one subscriber is logged and does not stop the others.

        Returns:
            Number of subscribers invoked
        """
        invoked = 0
        for subscription in self.listeners(type(event)):
            if not subscription.active:
                continue
            if subscription.once:
                self.off(subscription)
            try:
                subscription.handler(event)
            except Exception:
                logger.exception(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    subscription=subscription.id,
                )
            subscription.invocation_count += 1
            invoked += 1
        return invoked
