# src/termchat/providers/openai_adapter.py
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from termchat.core.errors import classify_upstream_error
from termchat.core.models import GenerationConfig, Turn
from termchat.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def extract_openai_delta(chunk: Any) -> Optional[str]:
    """Text of one chat.completion.chunk, or None for chunks that carry none."""
    try:
        piece = chunk.choices[0].delta.content
    except (AttributeError, IndexError, TypeError):
        return None
    return piece if isinstance(piece, str) and piece else None


@ProviderRegistry.register("openai")
class OpenAIAdapter:
    """
    Thin adapter over the async OpenAI SDK:
    - streams chat completions and yields only choices[0].delta.content
    - maps SDK errors to neutral ProviderClientError / ProviderTransientError
    """

    display_name = "OpenAI"
    default_model = "gpt-4o"

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
        organization: Optional[str] = None,
    ):
        if model:
            self.default_model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        if organization:
            client_kwargs["organization"] = organization
        self.client = AsyncOpenAI(**client_kwargs)
        self.timeout = timeout

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], api_key: str) -> "OpenAIAdapter":
        cfg = provider_cfg or {}
        return cls(
            api_key,
            model=cfg.get("model"),
            timeout=cfg.get("timeout"),
            base_url=cfg.get("base_url"),
            organization=cfg.get("organization"),
        )

    def _build_args(self, turns: Sequence[Turn], config: GenerationConfig) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = [t.model_dump() for t in turns]
        args: Dict[str, Any] = {
            "model": config.model or self.default_model,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "stream": True,
        }
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    async def stream(self, turns: Sequence[Turn], config: GenerationConfig) -> AsyncIterator[str]:
        logger.debug("%s stream: model=%s turns=%d", self.name, config.model, len(turns))
        try:
            stream = await self.client.chat.completions.create(**self._build_args(turns, config))
        except Exception as e:
            raise classify_upstream_error(e) from e

        try:
            async for chunk in stream:
                piece = extract_openai_delta(chunk)
                if piece:
                    yield piece
        except Exception as e:
            raise classify_upstream_error(e) from e
