"""
Exceptions raised by scenekit.

Configuration problems are raised immediately from constructors so that no
half-built scene or dialogue is ever returned. Usage problems during a
conversation are mostly reported as ``False`` return values and logged; only
scene entry raises, since it is awaited by the caller.
"""

from typing import Any, Dict, Optional


class ScenekitError(Exception):
    """
    Base exception for all scenekit errors.

    Attributes:
        message: Human-readable error description
        code: Optional short error code
        details: Optional additional error details
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, code={self.code!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ConfigurationError(ScenekitError):
    """Invalid scope, listener type, pattern or option values."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="invalid_config", details=details)


class UsageError(ScenekitError):
    """An operation was called in a state that does not allow it."""


class AlreadyEngagedError(UsageError):
    """Raised when entering a scene for participants already in dialogue."""

    def __init__(self, participants: Any):
        super().__init__(
            f"{participants} is already engaged",
            code="already_engaged",
            details={"participants": str(participants)},
        )
        self.participants = participants
