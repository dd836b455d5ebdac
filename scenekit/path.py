"""
Dialogue paths and branches.

A path is one turn of a conversation: an optional prompt and the branches a
reply can take. Only the dialogue's active path has live branches; earlier
paths stay in the dialogue as a record, with their transcript.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    Union,
)

if TYPE_CHECKING:
    from .adapters.base import Response, User


BranchHandler = Callable[["re.Match[str]", "Response"], Union[Awaitable[Any], Any]]


class TranscriptAction(str, Enum):
    """What happened in a transcript entry."""

    SEND = "send"
    MATCH = "match"
    MISMATCH = "mismatch"


class TranscriptEntry(NamedTuple):
    """One line of a path transcript, e.g. ``("match", user, "left")``."""

    action: TranscriptAction
    actor: Union[str, "User"]
    text: str


@dataclass
class Branch:
    """Pattern to reply/handler rule."""

    pattern: "re.Pattern[str]"
    reply: Optional[str] = None
    handler: Optional[BranchHandler] = None

    def match(self, text: str) -> Optional["re.Match[str]"]:
        return self.pattern.search(text)


@dataclass
class Path:
    """
    A prompt and the branches that can answer it.

    ``branches`` records every branch registered on the path. The dialogue
    keeps its own list of the ones still live.
    """

    id: str
    prompt: Optional[str] = None
    branches: List[Branch] = field(default_factory=list)
    status: List[bool] = field(default_factory=list)
    transcript: List[TranscriptEntry] = field(default_factory=list)
    closed: bool = False

    def record(self, action: TranscriptAction, actor: Union[str, "User"], text: str) -> None:
        self.transcript.append(TranscriptEntry(action, actor, text))


def first_match(branches: Sequence[Branch], text: str) -> Optional[Tuple[Branch, "re.Match[str]"]]:
    """First branch matching text, with the match, or None."""
    for branch in branches:
        found = branch.match(text)
        if found:
            return branch, found
    return None
