"""
Identifiers for scenes, dialogues, paths and participants.
"""

import itertools
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, DefaultDict, Iterator, Optional, Union

from .config import SceneScope

if TYPE_CHECKING:
    from .adapters.base import Message


_counters: DefaultDict[str, Iterator[int]] = defaultdict(lambda: itertools.count(1))


def slugify(text: str) -> str:
    """
    Lower snake_case version of text, safe for use inside an id.

    Letters and digits of any script are kept, so non-Latin text still gives
    a distinct slug.
    """
    return re.sub(r"[\W_]+", "_", text.lower()).strip("_")


def make_id(name: str, key: Optional[str] = None) -> str:
    """
    Id for a module instance, e.g. ``scene_support`` or ``dialogue_3``.

    Keyless ids take the next value of a counter kept per name.
    """
    slug = slugify(key) if key else ""
    if slug:
        return f"{name}_{slug}"
    return f"{name}_{next(_counters[name])}"


def path_id(scope: str, key: Optional[str] = None, prompt: Optional[str] = None) -> str:
    """
    Id for a dialogue path within ``scope`` (the owning dialogue id).

    Derived from the key if given, else from the prompt text, else unique.
    A key or prompt with nothing to slug (only punctuation or emoji) counts
    as absent.
    """
    slug = slugify(key or prompt or "")
    if slug:
        return f"{scope}_{slug}"
    return make_id(f"{scope}_path")


@dataclass(frozen=True)
class UserKey:
    """A user, wherever they are speaking."""

    user_id: str

    def __str__(self) -> str:
        return f"user:{self.user_id}"


@dataclass(frozen=True)
class RoomKey:
    """Everyone in a room."""

    room: str

    def __str__(self) -> str:
        return f"room:{self.room}"


@dataclass(frozen=True)
class DirectKey:
    """A user in one particular room."""

    user_id: str
    room: str

    def __str__(self) -> str:
        return f"direct:{self.user_id}@{self.room}"


ParticipantKey = Union[UserKey, RoomKey, DirectKey]


def participant_key(scope: SceneScope, message: "Message") -> ParticipantKey:
    """Identify who is speaking, relative to the scene scope."""
    if scope == SceneScope.ROOM:
        return RoomKey(str(message.room))
    if scope == SceneScope.DIRECT:
        return DirectKey(str(message.user.id), str(message.room))
    return UserKey(str(message.user.id))
