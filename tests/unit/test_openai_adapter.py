# tests/unit/test_openai_adapter.py

from __future__ import annotations
import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

# Import the module, then monkeypatch its AsyncOpenAI class
import termchat.providers.openai_adapter as oa
from termchat.core.errors import ProviderClientError, ProviderTransientError
from termchat.core.models import GenerationConfig, Turn


# -------- Fakes to replace the OpenAI SDK --------

def _chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


class _StatusError(Exception):
    def __init__(self, msg: str, status_code: int) -> None:
        super().__init__(msg)
        self.status_code = status_code


class _FakeCompletions:
    chunks: List[Any] = []
    error: Exception | None = None
    calls: List[Dict[str, Any]] = []

    async def create(self, **kwargs):
        _FakeCompletions.calls.append(kwargs)
        if _FakeCompletions.error is not None:
            raise _FakeCompletions.error

        async def _iter():
            for c in _FakeCompletions.chunks:
                yield c
        return _iter()


class _FakeAsyncOpenAI:
    def __init__(self, **kwargs) -> None:
        self.kwargs = kwargs
        self.chat = SimpleNamespace(completions=_FakeCompletions())


@pytest.fixture
def fake_sdk(monkeypatch):
    monkeypatch.setattr(oa, "AsyncOpenAI", _FakeAsyncOpenAI, raising=True)
    _FakeCompletions.chunks = []
    _FakeCompletions.error = None
    _FakeCompletions.calls = []
    return _FakeCompletions


async def _collect(agen):
    return [x async for x in agen]


TURNS = [Turn(role="system", content="sys"), Turn(role="user", content="hi")]
CONFIG = GenerationConfig(provider="openai", model="gpt-4o", temperature=0.7, max_tokens=1000)


def test_stream_yields_only_delta_content(fake_sdk):
    fake_sdk.chunks = [
        _chunk("he"),
        SimpleNamespace(choices=[]),      # no choices
        _chunk(None),                     # role-only first chunk
        SimpleNamespace(),                # unrecognised shape
        _chunk("llo"),
    ]
    adapter = oa.OpenAIAdapter(api_key="sk-test")

    assert asyncio.run(_collect(adapter.stream(TURNS, CONFIG))) == ["he", "llo"]

    args = fake_sdk.calls[0]
    assert args["model"] == "gpt-4o"
    assert args["temperature"] == 0.7
    assert args["max_tokens"] == 1000
    assert args["stream"] is True
    assert args["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]


def test_create_uses_provider_config(fake_sdk):
    adapter = oa.OpenAIAdapter.create(
        provider_cfg={"model": "gpt-4o-mini", "base_url": "http://proxy", "timeout": 5},
        api_key="sk-test",
    )
    assert adapter.default_model == "gpt-4o-mini"
    assert adapter.client.kwargs == {"api_key": "sk-test", "base_url": "http://proxy"}

    asyncio.run(_collect(adapter.stream(TURNS, CONFIG)))
    assert fake_sdk.calls[0]["timeout"] == 5


def test_setup_errors_are_classified(fake_sdk):
    adapter = oa.OpenAIAdapter(api_key="sk-test")

    fake_sdk.error = _StatusError("invalid api key", 401)
    with pytest.raises(ProviderClientError):
        asyncio.run(_collect(adapter.stream(TURNS, CONFIG)))

    fake_sdk.error = _StatusError("overloaded", 503)
    with pytest.raises(ProviderTransientError):
        asyncio.run(_collect(adapter.stream(TURNS, CONFIG)))


def test_extract_openai_delta_tolerates_malformed_chunks():
    assert oa.extract_openai_delta(_chunk("x")) == "x"
    assert oa.extract_openai_delta(_chunk("")) is None
    assert oa.extract_openai_delta(SimpleNamespace(choices=None)) is None
    assert oa.extract_openai_delta(SimpleNamespace(choices=[SimpleNamespace(delta=None)])) is None
