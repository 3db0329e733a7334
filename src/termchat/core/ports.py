from __future__ import annotations
from typing import Any, AsyncIterator, Dict, Protocol, Sequence

from .models import GenerationConfig, Turn


class UpstreamProvider(Protocol):
    """
    Interface the relay uses to talk to any LLM backend.
    """

    name: str
    display_name: str
    default_model: str

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], api_key: str) -> "UpstreamProvider":
        ...

    def stream(self, turns: Sequence[Turn], config: GenerationConfig) -> AsyncIterator[str]:
        """
        Streaming call. 'config' is already resolved (no None fields).
        Yields text fragments as they arrive; events without text yield nothing.
        """
        ...
