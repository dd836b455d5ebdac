"""
Scenes conduct participation in dialogue.

A scene's listeners enter an audience into a new dialogue with the bot. Once
engaged, the audience is isolated from the bot's other listeners: their
messages go straight to their dialogue until they exit the scene. Who the
audience is depends on the scope:

- user: the user, in any room
- room: everyone in the room
- direct: the user, in that room only
- private: the user, with replies sent as direct messages

Example::

    scene = Scene(robot, scope="user")

    async def start(res, context):
        await context.dialogue.add_path(
            prompt="Turn left or right?",
            branches=[("left", "Ok, going left!"), ("right", "Ok, going right!")],
        )

    scene.respond("directions", start)
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Set,
    Tuple,
    Union,
)

import structlog

from .adapters.base import ListenerType, ReceiveContext, Response, Robot, to_regex
from .config import SceneConfig, build_config
from .dialogue import Dialogue
from .events import EndEvent, EnterEvent, EventEmitter, ExitEvent, Subscription, TimeoutEvent
from .exceptions import AlreadyEngagedError, ConfigurationError
from .keys import ParticipantKey, make_id, participant_key
from .middleware import Middleware, MiddlewareAction, MiddlewareHandler, maybe_await


logger = structlog.get_logger(__name__)


@dataclass
class EnterContext:
    """Context passed through a scene's enter middleware."""

    response: Response
    participants: ParticipantKey
    options: Dict[str, Any] = field(default_factory=dict)
    arguments: Tuple[Any, ...] = ()
    dialogue: Optional[Dialogue] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


EnterCallback = Callable[[EnterContext], Union[Awaitable[Any], Any]]
ListenCallback = Callable[[Response, EnterContext], Union[Awaitable[Any], Any]]


class Scene(EventEmitter):
    """
    Engages participants in dialogue and routes their messages to it.

    Args:
        robot: Chat runtime to listen on
        config: ``SceneConfig`` or mapping of its fields
        key: Optional name, given to dialogues that have none
        **options: Individual config fields, override ``config``

    Raises:
        ConfigurationError: for an invalid scope or option
    """

    def __init__(
        self,
        robot: Robot,
        config: Union[SceneConfig, Mapping[str, Any], None] = None,
        key: Optional[str] = None,
        **options: Any,
    ):
        super().__init__()
        self.config: SceneConfig = build_config(SceneConfig, config, **options)
        self.robot = robot
        self.key = key
        self.id = make_id("scene", key)

        self.engaged: Dict[ParticipantKey, Dialogue] = {}
        self.enter_middleware: Middleware[EnterContext] = Middleware(f"{self.id}.enter")

        self._timeout_listeners: Dict[ParticipantKey, Subscription] = {}
        self._end_listeners: Dict[ParticipantKey, Subscription] = {}
        self._tasks: Set[asyncio.Task] = set()

        self.logger = logger.bind(scene=self.id, scope=self.config.scope.value)
        self.robot.receive_middleware(self.receive_middleware)

    @property
    def scope(self) -> str:
        return self.config.scope.value

    # -------------------------------------------------------------------------
    # Routing
    # -------------------------------------------------------------------------

    async def receive_middleware(self, context: ReceiveContext) -> MiddlewareAction:
        """
        Route messages from engaged participants to their dialogue.

        Engaged messages are finished so regular listeners never see them, and
        the receive pipeline halts. Anything else continues as normal.
        """
        res = context.response
        participants = self.participant_key(res)
        dialogue = self.engaged.get(participants)
        if dialogue is None:
            return MiddlewareAction.CONTINUE

        self.logger.debug("routing_to_dialogue", participants=str(participants))
        res.message.finish()
        await dialogue.receive(res)
        return MiddlewareAction.HALT

    def participant_key(self, res: Response) -> ParticipantKey:
        """Identify the source of a message relative to the scene scope."""
        return participant_key(self.config.scope, res.message)

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def listen(
        self,
        kind: Union[ListenerType, str],
        pattern: Union[str, "re.Pattern[str]"],
        callback: ListenCallback,
    ) -> None:
        """
        Add a listener that enters the audience into the scene.

        The callback gets the response and the final enter context; it runs
        only if the enter middleware let the audience in. It would usually add
        dialogue paths via ``context.dialogue``.

        Raises:
            ConfigurationError: for an invalid type, pattern or callback
        """
        try:
            kind = ListenerType(kind)
        except ValueError as e:
            raise ConfigurationError(f"invalid listener type {kind!r}") from e
        regex = to_regex(pattern)
        if not callable(callback):
            raise ConfigurationError(f"invalid callback for listener {regex.pattern!r}")

        async def on_match(res: Response) -> None:
            try:
                await self.enter(res, callback=lambda context: callback(context.response, context))
            except AlreadyEngagedError as e:
                self.logger.debug("enter_interrupted", pattern=regex.pattern, reason=str(e))

        self.robot.listen(kind, regex, on_match, listener_id=self.id)

    def hear(self, pattern: Union[str, "re.Pattern[str]"], callback: ListenCallback) -> None:
        """``listen`` for any message."""
        self.listen(ListenerType.HEAR, pattern, callback)

    def respond(self, pattern: Union[str, "re.Pattern[str]"], callback: ListenCallback) -> None:
        """``listen`` for messages addressed to the bot."""
        self.listen(ListenerType.RESPOND, pattern, callback)

    # -------------------------------------------------------------------------
    # Entry
    # -------------------------------------------------------------------------

    def register_middleware(self, handler: MiddlewareHandler) -> None:
        """
        Add a handler to the enter middleware.

        Handlers get the ``EnterContext`` and return
        ``MiddlewareAction.CONTINUE`` to let the audience in; returning
        anything else vetoes entry before a dialogue is created.
        """
        self.enter_middleware.register(handler)

    async def enter(
        self,
        res: Response,
        options: Optional[Mapping[str, Any]] = None,
        *args: Any,
        callback: Optional[EnterCallback] = None,
    ) -> EnterContext:
        """
        Run the enter middleware and, if it completes, engage the audience.

        The callback is called on the next loop iteration, after this
        coroutine returned, so callers can add paths either in the callback or
        straight after awaiting ``enter``. If no path exists once the callback
        finished, the audience exits again ("no path"), which suits one-off
        interactions that only needed the middleware.

        Args:
            res: Response from the audience
            options: Dialogue options, override the scene's
            *args: Further arguments for the Dialogue, e.g. its key
            callback: Called with the final context if entry completed

        Returns:
            The enter context; its ``dialogue`` is None if entry was vetoed

        Raises:
            AlreadyEngagedError: if the audience is already in dialogue
        """
        participants = self.participant_key(res)
        if self.in_dialogue(participants):
            raise AlreadyEngagedError(participants)

        merged = self.config.dialogue_options()
        merged.update(options or {})
        context = EnterContext(
            response=res,
            participants=participants,
            options=merged,
            arguments=args,
        )

        def done(context: EnterContext) -> None:
            task = asyncio.get_running_loop().create_task(self._complete_enter(context, callback))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        completed = await self.enter_middleware.execute(context, self.process_enter, done)
        if not completed:
            self.logger.info("enter_vetoed", participants=str(participants))
        return context

    async def _complete_enter(self, context: EnterContext, callback: Optional[EnterCallback]) -> None:
        if callback is not None:
            try:
                await maybe_await(callback(context))
            except Exception:
                self.logger.exception("enter_callback_failed", participants=str(context.participants))

        await asyncio.sleep(0)
        dialogue = context.dialogue
        if dialogue is None or dialogue.path is not None:
            return
        # only if still engaged in this dialogue, not one entered since
        if self.engaged.get(context.participants) is dialogue:
            self.exit(context.response, "no path")

    def process_enter(self, context: EnterContext) -> Dialogue:
        """
        Engage the participants in a new dialogue.

        Usually the final step of the enter middleware, but may be called
        directly to force an audience into the scene unprompted.
        """
        dialogue = Dialogue(context.response, context.options, *context.arguments)
        dialogue.scene = self
        if dialogue.key is None and self.key is not None:
            dialogue.key = self.key

        participants = context.participants
        self._timeout_listeners[participants] = dialogue.on(
            TimeoutEvent, lambda event: self.exit(event.response, "timeout")
        )
        self._end_listeners[participants] = dialogue.on(
            EndEvent,
            lambda event: self.exit(event.response, "complete" if event.completed else "incomplete"),
        )
        self.engaged[participants] = dialogue
        context.dialogue = dialogue

        self.emit(EnterEvent(self, response=context.response, dialogue=dialogue))
        self.logger.info("participants_engaged", participants=str(participants), dialogue=dialogue.id)
        return dialogue

    # -------------------------------------------------------------------------
    # Exit
    # -------------------------------------------------------------------------

    def exit(self, res: Response, status: str = "unknown") -> bool:
        """
        Disengage the audience of a response, ending their dialogue.

        Safe to call from the dialogue's own end or timeout handlers.

        Returns:
            False if they were not engaged
        """
        participants = self.participant_key(res)
        dialogue = self.engaged.pop(participants, None)
        if dialogue is None:
            self.logger.debug("exit_not_engaged", participants=str(participants))
            return False

        dialogue.clear_timeout()
        dialogue.off(self._timeout_listeners.pop(participants, None))
        dialogue.off(self._end_listeners.pop(participants, None))
        dialogue.end()

        self.emit(ExitEvent(self, response=res, status=status))
        self.logger.info("participants_disengaged", participants=str(participants), status=status)
        return True

    def exit_all(self) -> int:
        """
        Disengage everyone in the scene.

        Returns:
            Number of participants disengaged
        """
        self.logger.info("disengaging_all", engaged=len(self.engaged))
        count = 0
        for dialogue in list(self.engaged.values()):
            if self.exit(dialogue.res, "exit all"):
                count += 1
        return count

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_dialogue(self, participants: ParticipantKey) -> Optional[Dialogue]:
        """Dialogue for engaged participants, if any."""
        return self.engaged.get(participants)

    def in_dialogue(self, participants: ParticipantKey) -> bool:
        """Whether the participants are engaged."""
        return participants in self.engaged

    def engaged_keys(self) -> List[ParticipantKey]:
        return list(self.engaged)
