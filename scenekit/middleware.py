"""
Middleware pipeline.

An ordered chain of handlers, each taking the pipeline context and returning
a ``MiddlewareAction``. ``CONTINUE`` moves on to the next handler; anything
else (including ``None``) stops the chain there. Stopping is a veto, not an
error.

Used by scenes for entry (access control before a dialogue exists) and by the
in-memory runtime for its receive pipeline.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar, Union

import structlog

logger = structlog.get_logger(__name__)

C = TypeVar("C")


class MiddlewareAction(str, Enum):
    """Result returned by a middleware handler."""

    CONTINUE = "continue"
    HALT = "halt"


MiddlewareHandler = Callable[[Any], Union[Optional[MiddlewareAction], Awaitable[Optional[MiddlewareAction]]]]
CompletionCallback = Callable[[Any], Any]


async def maybe_await(result: Any) -> Any:
    """Await ``result`` if it is awaitable, otherwise return it."""
    if inspect.isawaitable(result):
        return await result
    return result


class Middleware(Generic[C]):
    """Chain of middleware handlers."""

    def __init__(self, name: str = "middleware"):
        self.name = name
        self._handlers: List[MiddlewareHandler] = []

    def __len__(self) -> int:
        return len(self._handlers)

    def register(self, handler: MiddlewareHandler) -> "Middleware[C]":
        """Add handler to the end of the chain."""
        if not callable(handler):
            raise TypeError(f"middleware handler must be callable, got {handler!r}")
        self._handlers.append(handler)
        return self

    async def execute(
        self,
        context: C,
        on_complete: Optional[CompletionCallback] = None,
        on_done: Optional[CompletionCallback] = None,
    ) -> bool:
        """
        Run context through all handlers.

        Args:
            context: Passed to every handler and to both callbacks
            on_complete: Called (and awaited if async) once every handler
                continued
            on_done: Scheduled for the next loop iteration after on_complete,
                so it runs after this coroutine has returned to the caller

        Returns:
            True if every handler continued, False if one halted or raised
        """
        for handler in self._handlers:
            try:
                action = await maybe_await(handler(context))
            except Exception:
                logger.exception(
                    "middleware_handler_failed",
                    pipeline=self.name,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
                return False

            if action != MiddlewareAction.CONTINUE:
                logger.debug(
                    "middleware_halted",
                    pipeline=self.name,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                )
                return False

        if on_complete is not None:
            await maybe_await(on_complete(context))

        if on_done is not None:
            asyncio.get_running_loop().call_soon(on_done, context)

        return True
