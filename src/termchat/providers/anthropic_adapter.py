# src/termchat/providers/anthropic_adapter.py
from __future__ import annotations
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from anthropic import AsyncAnthropic

from termchat.core.errors import classify_upstream_error
from termchat.core.models import GenerationConfig, Turn
from termchat.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def extract_anthropic_delta(event: Any) -> Optional[str]:
    """Text of a content_block_delta event; every other event shape yields None."""
    if getattr(event, "type", None) != "content_block_delta":
        return None
    text = getattr(getattr(event, "delta", None), "text", None)
    return text if isinstance(text, str) and text else None


def split_system(turns: Sequence[Turn]) -> Tuple[Optional[str], List[Dict[str, str]]]:
    """
    The Messages API takes the system prompt as its own parameter.
    Lift every system turn out (joined by blank lines) and keep the rest in order.
    """
    system_parts = [t.content for t in turns if t.role == "system"]
    rest = [t.model_dump() for t in turns if t.role != "system"]
    return ("\n\n".join(system_parts) if system_parts else None), rest


@ProviderRegistry.register("anthropic")
class AnthropicAdapter:
    """
    Thin adapter over the async Anthropic SDK. Streams raw message events and
    yields the text of content_block_delta events only.
    """

    display_name = "Anthropic"
    default_model = "claude-3-opus-20240229"

    def __init__(
        self,
        api_key: str,
        *,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        base_url: Optional[str] = None,
    ):
        if model:
            self.default_model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key}
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = AsyncAnthropic(**client_kwargs)
        self.timeout = timeout

    @classmethod
    def create(cls, *, provider_cfg: Dict[str, Any], api_key: str) -> "AnthropicAdapter":
        cfg = provider_cfg or {}
        return cls(
            api_key,
            model=cfg.get("model"),
            timeout=cfg.get("timeout"),
            base_url=cfg.get("base_url"),
        )

    def _build_args(self, turns: Sequence[Turn], config: GenerationConfig) -> Dict[str, Any]:
        system, messages = split_system(turns)
        args: Dict[str, Any] = {
            "model": config.model or self.default_model,
            "messages": messages,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "stream": True,
        }
        if system:
            args["system"] = system
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    async def stream(self, turns: Sequence[Turn], config: GenerationConfig) -> AsyncIterator[str]:
        logger.debug("%s stream: model=%s turns=%d", self.name, config.model, len(turns))
        try:
            stream = await self.client.messages.create(**self._build_args(turns, config))
        except Exception as e:
            raise classify_upstream_error(e) from e

        try:
            async for event in stream:
                piece = extract_anthropic_delta(event)
                if piece:
                    yield piece
        except Exception as e:
            raise classify_upstream_error(e) from e
