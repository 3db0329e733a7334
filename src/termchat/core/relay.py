# src/termchat/core/relay.py
from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Iterable, Optional, Sequence, Tuple

from .errors import ProviderNotConfiguredError, UnsupportedProviderError
from .models import DEFAULT_PROVIDER, GenerationConfig, Turn
from .ports import UpstreamProvider

logger = logging.getLogger(__name__)

_EMPTY = object()


@dataclass(frozen=True)
class ProviderSlot:
    """
    One known provider. adapter is None when no credential was configured,
    which makes the provider unavailable rather than unknown.
    """
    name: str
    display_name: str
    adapter: Optional[UpstreamProvider] = None

    @property
    def available(self) -> bool:
        return self.adapter is not None


class StreamRelay:
    """
    Forwards a conversation to the selected upstream provider and re-emits its
    text fragments. Holds no per-request state; every call owns its iterator.
    """

    def __init__(self, slots: Iterable[ProviderSlot], *, default_provider: str = DEFAULT_PROVIDER):
        self._slots: Dict[str, ProviderSlot] = {s.name.lower(): s for s in slots}
        self.default_provider = default_provider.lower()
        if self.default_provider not in self._slots:
            raise ValueError(f"Default provider '{default_provider}' is not a known provider")

    def available_providers(self) -> Dict[str, bool]:
        return {name: slot.available for name, slot in self._slots.items()}

    def is_available(self, provider: str) -> bool:
        slot = self._slots.get(str(provider).lower())
        return bool(slot and slot.available)

    def select(self, config: Optional[GenerationConfig]) -> Tuple[UpstreamProvider, GenerationConfig]:
        """
        Pick the adapter for config.provider and apply defaults.
        Unknown provider -> UnsupportedProviderError (no fallback);
        known but unconfigured -> ProviderNotConfiguredError.
        """
        config = config or GenerationConfig()
        # only a missing provider takes the default; "" is an unknown provider
        name = (self.default_provider if config.provider is None else config.provider).lower()
        slot = self._slots.get(name)
        if slot is None:
            raise UnsupportedProviderError(config.provider)
        if slot.adapter is None:
            raise ProviderNotConfiguredError(slot.name, slot.display_name)
        resolved = config.model_copy(update={"provider": name}).resolve(slot.adapter.default_model)
        return slot.adapter, resolved

    async def open_stream(
        self,
        turns: Sequence[Turn],
        config: Optional[GenerationConfig] = None,
        *,
        terminal_id: str = "-",
    ) -> AsyncIterator[str]:
        """
        Start the upstream call and wait for its first text fragment.
        Anything that fails up to that point raises here, before the caller has
        committed a response. The returned iterator yields the fragments in order
        and re-raises a mid-stream failure so the body ends abnormally.
        """
        adapter, resolved = self.select(config)
        logger.info(
            "terminal=%s provider=%s model=%s turns=%d temperature=%s max_tokens=%s",
            terminal_id, resolved.provider, resolved.model, len(turns),
            resolved.temperature, resolved.max_tokens,
        )
        started = time.monotonic()
        upstream = adapter.stream(list(turns), resolved)
        try:
            first = await upstream.__anext__()
        except StopAsyncIteration:
            first = _EMPTY
        except Exception:
            logger.exception("terminal=%s upstream setup failed", terminal_id)
            await _close(upstream)
            raise
        if first is not _EMPTY:
            logger.info("terminal=%s first fragment after %.2fs", terminal_id, time.monotonic() - started)
        return self._relay(upstream, first, terminal_id, started)

    async def _relay(self, upstream: AsyncIterator[str], first: object, terminal_id: str, started: float) -> AsyncIterator[str]:
        count = 0
        chars = 0
        try:
            if first is not _EMPTY:
                count, chars = 1, len(first)  # type: ignore[arg-type]
                yield first  # type: ignore[misc]
            async for piece in upstream:
                count += 1
                chars += len(piece)
                yield piece
        except Exception:
            # Bytes are already flushed; the caller sees a truncated body
            logger.exception("terminal=%s upstream failed mid-stream after %d fragments", terminal_id, count)
            raise
        finally:
            await _close(upstream)
        logger.info(
            "terminal=%s stream complete: %d fragments, %d chars, %.2fs",
            terminal_id, count, chars, time.monotonic() - started,
        )


async def _close(iterator: AsyncIterator[str]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()
