# src/termchat/core/models.py
from __future__ import annotations

import datetime as dt
import uuid
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["system", "user", "assistant"]
Sender = Literal["user", "system"]

DEFAULT_PROVIDER = "openai"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000


class Turn(BaseModel):
    """One role-tagged message of a conversation, as sent upstream."""
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class GenerationConfig(BaseModel):
    """
    Per-request generation settings. Every field is optional; resolve()
    fills the gaps. provider stays a plain string so an unknown value can be
    rejected by the relay with its own error instead of a validation error.
    """
    model_config = ConfigDict(frozen=True)

    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(default=None, gt=0)

    def resolve(self, default_model: str) -> "GenerationConfig":
        # A temperature of 0 is a real value, only None takes the default
        return GenerationConfig(
            provider=(DEFAULT_PROVIDER if self.provider is None else self.provider).lower(),
            model=self.model or default_model,
            temperature=DEFAULT_TEMPERATURE if self.temperature is None else self.temperature,
            max_tokens=DEFAULT_MAX_TOKENS if self.max_tokens is None else self.max_tokens,
        )


class CompletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: str
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    is_complete: bool = True


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TerminalMessage(BaseModel):
    """
    A history entry as a terminal shows it. sender 'system' is the model's
    side of the chat; welcome marks the greeting injected by the UI.
    """
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    content: str
    sender: Sender
    timestamp: dt.datetime = Field(default_factory=_now)
    welcome: bool = False
    complete: bool = True

    def to_turn(self) -> Turn:
        return Turn(role="user" if self.sender == "user" else "assistant", content=self.content)


class TerminalLLM(BaseModel):
    """Generation settings bound to one terminal; id is used in the relay path."""
    id: str
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=1.0)
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, gt=0)

    def generation_config(self, provider_tag: str) -> GenerationConfig:
        return GenerationConfig(
            provider=provider_tag,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
