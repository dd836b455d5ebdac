"""
Configuration for scenekit.

Environment defaults are read once through ``get_settings()``; dialogues and
scenes validate their own options into ``DialogueConfig`` / ``SceneConfig``
when they are constructed.
"""
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "production", "test"] = "development"

    # Dialogue defaults
    dialogue_timeout: float = 30.0  # seconds, 0 disables
    dialogue_timeout_line: str = "Timed out! Please start again."

    # Logging
    log_level: str = "INFO"
    log_format: Optional[Literal["json", "console"]] = None  # json in production, else console


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class SceneScope(str, Enum):
    """Who a scene engages when a listener fires."""

    USER = "user"        # the user, in any room
    ROOM = "room"        # everyone in the room
    DIRECT = "direct"    # the user, in that room only
    PRIVATE = "private"  # the user, replies sent privately


class DialogueConfig(BaseModel):
    """Options for a single dialogue."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    timeout: float = Field(default_factory=lambda: get_settings().dialogue_timeout)
    timeout_line: str = Field(default_factory=lambda: get_settings().dialogue_timeout_line)
    send_replies: bool = False
    send_direct: bool = False


class SceneConfig(BaseModel):
    """
    Options for a scene.

    ``send_replies`` and ``send_direct`` default by scope: room scenes address
    replies to the user so the recipient is clear, private scenes reply in a
    direct message. Timeout values left as None fall through to the dialogue
    defaults.
    """

    model_config = ConfigDict(extra="forbid")

    scope: SceneScope = SceneScope.USER
    send_replies: Optional[bool] = None
    send_direct: Optional[bool] = None
    timeout: Optional[float] = None
    timeout_line: Optional[str] = None

    @model_validator(mode="after")
    def _scope_defaults(self) -> "SceneConfig":
        if self.send_replies is None:
            self.send_replies = self.scope == SceneScope.ROOM
        if self.send_direct is None:
            self.send_direct = self.scope == SceneScope.PRIVATE
        return self

    def dialogue_options(self) -> Dict[str, Any]:
        """Options handed down to dialogues created by the scene."""
        return self.model_dump(exclude={"scope"}, exclude_none=True)


ConfigInput = Union[BaseModel, Mapping[str, Any], None]


def build_config(model: type, value: ConfigInput, **overrides: Any) -> Any:
    """
    Validate ``value`` (a model instance, a mapping or None) into ``model``.

    Raises:
        ConfigurationError: if validation fails
    """
    if isinstance(value, model) and not overrides:
        return value
    if isinstance(value, BaseModel):
        data = value.model_dump(exclude_unset=True)
    else:
        data = dict(value or {})
    data.update(overrides)
    try:
        return model(**data)
    except ValidationError as e:
        raise ConfigurationError(
            f"invalid {model.__name__}",
            details={"errors": e.errors(include_url=False)},
        ) from e
