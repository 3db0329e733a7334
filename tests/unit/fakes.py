# tests/unit/fakes.py
"""Shared fakes: an in-memory upstream adapter and a relay built from it."""

from __future__ import annotations
import sys
from pathlib import Path
from typing import List, Optional, Sequence

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from termchat.core.relay import ProviderSlot, StreamRelay  # noqa: E402


class FakeAdapter:
    """Yields fixed fragments; can fail before the first fragment or after the last."""

    def __init__(
        self,
        parts: Sequence[str] = ("Hel", "lo, ", "world"),
        *,
        name: str = "openai",
        display_name: str = "OpenAI",
        default_model: str = "gpt-4o",
        fail_before: Optional[Exception] = None,
        fail_after: Optional[Exception] = None,
    ):
        self.parts = list(parts)
        self.name = name
        self.display_name = display_name
        self.default_model = default_model
        self.fail_before = fail_before
        self.fail_after = fail_after
        self.calls: List[tuple] = []
        self.closed = False

    async def stream(self, turns, config):
        self.calls.append((list(turns), config))
        try:
            if self.fail_before is not None:
                raise self.fail_before
            for p in self.parts:
                yield p
            if self.fail_after is not None:
                raise self.fail_after
        finally:
            self.closed = True


def make_relay(openai: Optional[FakeAdapter] = None, anthropic: Optional[FakeAdapter] = None) -> StreamRelay:
    """Both providers are known; a None adapter means 'no credential'."""
    return StreamRelay([
        ProviderSlot(name="openai", display_name="OpenAI", adapter=openai),
        ProviderSlot(name="anthropic", display_name="Anthropic", adapter=anthropic),
    ])
