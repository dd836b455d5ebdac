"""
Dialogue: multi-turn conversation with a participant.

A dialogue holds paths (prompt + branches), matches incoming messages against
the branches of its active path and ends when a matched branch leaves nothing
further to wait for, when it times out, or when ``end()`` is called.

Lifecycle::

    idle --add_path/add_branch--> awaiting reply --match, no new branches--> ended
                                   |  ^                                      ^
                                   |  +--match, new branches added           |
                                   +--timeout / end()------------------------+

Example::

    dialogue = Dialogue(res, timeout=60)
    await dialogue.add_path(
        prompt="Turn left or right?",
        branches=[(r"left", "Ok, going left!"), (r"right", "Ok, going right!")],
        key="which-way",
    )
"""

import asyncio
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import structlog

from .adapters.base import Response, to_regex
from .config import DialogueConfig, build_config
from .events import (
    EndEvent,
    EventEmitter,
    MatchEvent,
    MismatchEvent,
    SendEvent,
    TimeoutEvent,
)
from .exceptions import ConfigurationError
from .keys import make_id, path_id
from .middleware import maybe_await
from .path import Branch, BranchHandler, Path, TranscriptAction, first_match

if TYPE_CHECKING:
    import re

    from .scene import Scene


logger = structlog.get_logger(__name__)

TimeoutHook = Callable[["Dialogue"], Union[Awaitable[Any], Any]]
BranchArgs = Sequence[Any]


async def send_timeout_line(dialogue: "Dialogue") -> None:
    """Default timeout hook: tell the participants they took too long."""
    await dialogue.send(dialogue.config.timeout_line)


class Dialogue(EventEmitter):
    """
    A conversation with the participants of a response.

    Args:
        res: The response that started the dialogue; later replies replace it
        config: ``DialogueConfig`` or mapping of its fields
        key: Optional name, used in ids and path ids
        **options: Individual config fields, override ``config``

    Raises:
        ConfigurationError: if the options do not validate
    """

    def __init__(
        self,
        res: Response,
        config: Union[DialogueConfig, Mapping[str, Any], None] = None,
        key: Optional[str] = None,
        **options: Any,
    ):
        super().__init__()
        self.config: DialogueConfig = build_config(DialogueConfig, config, **options)
        self.res = res
        self.key = key
        self.id = make_id("dialogue", key)
        self.scene: Optional["Scene"] = None

        self.paths: Dict[str, Path] = {}
        self.path: Optional[Path] = None
        self.ended = False
        self._live: List[Branch] = []

        self._countdown: Optional[asyncio.TimerHandle] = None
        self._timeout_task: Optional[asyncio.Task] = None
        self._on_timeout: TimeoutHook = send_timeout_line

        self.logger = logger.bind(dialogue=self.id)

    def __repr__(self) -> str:
        return f"<Dialogue {self.id} path={self.path_id} ended={self.ended}>"

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def path_id(self) -> Optional[str]:
        return self.path.id if self.path else None

    @property
    def branches(self) -> List[Branch]:
        """Live branches: those of the active path not yet resolved by a match."""
        return self._live

    @property
    def timeout_pending(self) -> bool:
        return self._countdown is not None

    @property
    def on_timeout(self) -> TimeoutHook:
        """Hook run when the timeout fires, called with the dialogue."""
        return self._on_timeout

    @on_timeout.setter
    def on_timeout(self, hook: TimeoutHook) -> None:
        if not callable(hook):
            raise ConfigurationError(f"timeout hook must be callable, got {hook!r}")
        self._on_timeout = hook

    def set_on_timeout(self, hook: TimeoutHook) -> None:
        """Replace the timeout hook."""
        self.on_timeout = hook

    # -------------------------------------------------------------------------
    # Timeout
    # -------------------------------------------------------------------------

    def start_timeout(self) -> Optional[asyncio.TimerHandle]:
        """
        (Re)start the countdown for a reply.

        Does nothing if the dialogue ended or the timeout is disabled
        (``<= 0``). Outside a running event loop no countdown can be armed, so
        the dialogue waits indefinitely; this is logged.
        """
        self.clear_timeout()
        if self.ended or self.config.timeout <= 0:
            return None
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("timeout_not_armed", reason="no running event loop")
            return None
        self._countdown = loop.call_later(self.config.timeout, self._timed_out)
        return self._countdown

    def clear_timeout(self) -> None:
        """Cancel a pending countdown, if any."""
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None

    def _timed_out(self) -> None:
        self._countdown = None
        self._timeout_task = asyncio.get_running_loop().create_task(self._run_timeout())

    async def _run_timeout(self) -> None:
        self.logger.info("dialogue_timeout", timeout=self.config.timeout, path=self.path_id)
        try:
            await maybe_await(self._on_timeout(self))
        except Exception:
            self.logger.exception("timeout_hook_failed")

        if self.ended:
            self.logger.debug("dialogue_ended_during_timeout_hook")
            return
        if self._countdown is not None:
            self.logger.debug("timeout_rearmed_by_hook")
            return

        self.emit(TimeoutEvent(self, response=self.res))
        self.end()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def end(self) -> bool:
        """
        End the dialogue.

        Returns:
            False if it had already ended
        """
        if self.ended:
            self.logger.debug("dialogue_already_ended")
            return False

        self.ended = True
        self.clear_timeout()
        completed = self.path.closed if self.path else False
        self.logger.info("dialogue_ended", completed=completed, path=self.path_id)
        self.emit(EndEvent(self, response=self.res, completed=completed))
        return True

    async def send(self, text: str) -> None:
        """
        Send text to the participants and record it on the active path.

        Private scenes send a direct message, scenes that address replies
        prefix the user, anything else posts to the room.
        """
        if self.path is not None:
            self.path.record(TranscriptAction.SEND, "bot", text)
        await self._deliver(text)

    async def _deliver(self, text: str) -> None:
        self.emit(SendEvent(self, response=self.res, text=text))
        if self.config.send_direct:
            await self.res.send_private(text)
        elif self.config.send_replies:
            await self.res.reply(text)
        else:
            await self.res.send(text)

    # -------------------------------------------------------------------------
    # Paths and branches
    # -------------------------------------------------------------------------

    async def add_path(
        self,
        prompt: Union[str, Sequence[BranchArgs], Mapping[str, Any], None] = None,
        branches: Optional[Sequence[BranchArgs]] = None,
        key: Optional[str] = None,
    ) -> Optional[str]:
        """
        Open a new path, replacing the live branches.

        Accepts ``add_path([...branches])``, ``add_path({"prompt": ...,
        "branches": [...], "key": ...})`` or the same as arguments. Each
        branch is a ``(pattern, reply)``, ``(pattern, handler)`` or
        ``(pattern, reply, handler)`` tuple.

        Returns:
            The path id, or None if the dialogue has ended
        """
        if isinstance(prompt, Mapping):
            definition = prompt
            prompt = definition.get("prompt")
            branches = definition.get("branches", branches)
            key = definition.get("key", key)
        elif prompt is not None and not isinstance(prompt, str):
            prompt, branches = None, prompt

        if self.ended:
            self.logger.warning("path_rejected", reason="dialogue ended", key=key)
            return None

        self.clear_timeout()
        path = Path(id=path_id(self.id, key=key, prompt=prompt), prompt=prompt)
        self.paths[path.id] = path
        self.path = path
        self._live = []

        for branch in branches or []:
            args = branch if isinstance(branch, (list, tuple)) else (branch,)
            self.add_branch(*args)

        self.logger.debug("path_added", path=path.id, branches=len(path.branches))

        if prompt:
            await self.send(prompt)
        return path.id

    def add_branch(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        reply: Union[str, BranchHandler, None] = None,
        handler: Optional[BranchHandler] = None,
    ) -> bool:
        """
        Add a branch to the active path and restart the timeout.

        A callable given as ``reply`` is taken as the handler. Invalid input
        is logged and rejected rather than raised.

        Returns:
            True if the branch was added
        """
        if handler is None and callable(reply):
            reply, handler = None, reply

        reason = None
        regex = None
        if self.ended:
            reason = "dialogue ended"
        elif reply is None and handler is None:
            reason = "missing reply or handler"
        elif reply is not None and not isinstance(reply, str):
            reason = "reply is not a string"
        elif handler is not None and not callable(handler):
            reason = "handler is not callable"
        else:
            try:
                regex = to_regex(pattern)
            except ConfigurationError as e:
                reason = e.message

        if reason is not None or regex is None:
            self.logger.warning("branch_rejected", reason=reason, pattern=str(pattern))
            if self.path is not None:
                self.path.status.append(False)
            return False

        if self.path is None:
            path = Path(id=path_id(self.id))
            self.paths[path.id] = path
            self.path = path

        branch = Branch(regex, reply, handler)
        self.path.branches.append(branch)
        self._live.append(branch)
        self.path.status.append(True)
        self.start_timeout()
        return True

    # -------------------------------------------------------------------------
    # Receiving
    # -------------------------------------------------------------------------

    async def receive(self, res: Response) -> bool:
        """
        Match a reply against the live branches.

        The first matching branch wins: its reply is sent, then its handler
        runs. If the handler left no live branches the path is closed and the
        dialogue ends as completed. A message matching nothing is recorded as
        a mismatch and the timeout restarts.

        Returns:
            False if the dialogue had already ended
        """
        if self.ended:
            self.logger.debug("receive_after_end", text=res.message.text)
            return False

        self.res = res
        user = res.message.user
        text = res.message.text
        path = self.path
        found = first_match(self._live, text)

        if found is None:
            if path is not None:
                path.record(TranscriptAction.MISMATCH, user, text)
            self.logger.debug("branch_mismatch", user=user.id, text=text)
            self.emit(MismatchEvent(self, response=res, user=user, text=text))
            self.start_timeout()
            return True

        branch, match = found
        self.clear_timeout()
        path.record(TranscriptAction.MATCH, user, text)
        res.match = match
        self.logger.debug("branch_match", user=user.id, text=text, pattern=branch.pattern.pattern)
        self.emit(
            MatchEvent(self, response=res, user=user, text=text, match=match, pattern=branch.pattern)
        )
        self._live = []

        # branch replies are delivered but not transcribed
        if branch.reply is not None:
            await self._deliver(branch.reply)
        if branch.handler is not None:
            try:
                await maybe_await(branch.handler(match, res))
            except Exception:
                self.logger.exception("branch_handler_failed", path=path.id, text=text)

        if self.ended:
            return True

        if not self.branches:
            path.closed = True
            self.path.closed = True
            self.end()
        return True
