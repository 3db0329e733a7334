# tests/unit/test_live_relay.py
"""End-to-end over a real uvicorn server: what the relay does to the wire is what the client sees."""

from __future__ import annotations
import asyncio
import socket
import sys
import threading
import time
from pathlib import Path

import pytest
import uvicorn

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from fakes import FakeAdapter, make_relay
from termchat.client.chat_providers import OpenAIChatProvider
from termchat.client.relay_client import RelayClient
from termchat.core.errors import ProviderTransientError, StreamTruncatedError
from termchat.core.models import TerminalLLM
from termchat.web.app import create_app


def _serve(app):
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    sock.bind(("127.0.0.1", 0))
    server = uvicorn.Server(uvicorn.Config(app, lifespan="off", log_level="critical"))
    thread = threading.Thread(target=server.run, kwargs={"sockets": [sock]}, daemon=True)
    thread.start()
    deadline = time.monotonic() + 10
    while not server.started:
        if not thread.is_alive() or time.monotonic() > deadline:
            raise RuntimeError("relay server did not start")
        time.sleep(0.01)
    return server, thread, sock


@pytest.fixture
def live_url():
    apps = []

    def start(**adapters) -> str:
        server, thread, sock = _serve(create_app(relay=make_relay(**adapters)))
        apps.append((server, thread, sock))
        return f"http://127.0.0.1:{sock.getsockname()[1]}"

    yield start

    for server, thread, sock in apps:
        server.should_exit = True
        thread.join(timeout=10)
        sock.close()


def _generate(url: str):
    events = []

    async def run():
        async with RelayClient(url, timeout=10.0) as relay:
            await OpenAIChatProvider(relay).generate_completion(
                "hello",
                [],
                "sys",
                TerminalLLM(id="t1"),
                lambda token: events.append(("token", token)),
                lambda response: events.append(("complete", response.content)),
                lambda error: events.append(("error", error)),
            )

    asyncio.run(run())
    return events


def test_complete_stream_over_http(live_url):
    events = _generate(live_url(openai=FakeAdapter()))
    # TCP may coalesce fragments
    assert "".join(v for k, v in events if k == "token") == "Hello, world"
    assert events[-1] == ("complete", "Hello, world")


def test_mid_stream_failure_reaches_caller_as_truncation(live_url):
    adapter = FakeAdapter(parts=["Hel"], fail_after=ProviderTransientError("connection reset"))

    events = _generate(live_url(openai=adapter))

    assert events[0] == ("token", "Hel")
    kind, err = events[-1]
    assert kind == "error"
    assert isinstance(err, StreamTruncatedError)
    assert err.partial == "Hel"
    assert [k for k, _ in events].count("error") == 1
    assert "complete" not in [k for k, _ in events]
