# src/termchat/client/relay_client.py
from __future__ import annotations
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from termchat.core.errors import (
    RelayError,
    RelayResponseError,
    RelayTransportError,
    StreamTruncatedError,
)
from termchat.core.models import CompletedResponse, GenerationConfig, Turn

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8000"


def _error_message(body: bytes) -> str:
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except ValueError:
        return text or "no response body"
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return text


class CompletionStream:
    """
    Lazy, finite, non-restartable sequence of text fragments for one request.

    Iterate it to receive fragments. After normal exhaustion `response` holds
    the CompletedResponse; on failure iteration raises a RelayError. aclose()
    releases the HTTP response, which is how an abandoned terminal cancels
    its request.
    """

    def __init__(self, client: httpx.AsyncClient, terminal_id: str, payload: Dict[str, Any]):
        self._client = client
        self.terminal_id = terminal_id
        self._payload = payload
        self._parts: List[str] = []
        self._iter: Optional[AsyncIterator[str]] = None
        self.response: Optional[CompletedResponse] = None

    @property
    def content(self) -> str:
        """Text received so far."""
        return "".join(self._parts)

    def __aiter__(self) -> AsyncIterator[str]:
        if self._iter is None:
            self._iter = self._iterate()
        return self._iter

    async def _iterate(self) -> AsyncIterator[str]:
        url = f"/api/{quote(self.terminal_id, safe='')}"
        try:
            async with self._client.stream("POST", url, json=self._payload) as resp:
                if not resp.is_success:
                    body = await resp.aread()
                    raise RelayResponseError(resp.status_code, _error_message(body))
                async for chunk in resp.aiter_text():
                    if chunk:
                        self._parts.append(chunk)
                        yield chunk
        except RelayError:
            raise
        except Exception as e:
            # httpx errors and anything an in-process transport re-raises
            reason = str(e) or e.__class__.__name__
            if self._parts:
                raise StreamTruncatedError(self.content, reason) from e
            raise RelayTransportError(reason) from e
        self.response = CompletedResponse(content=self.content)
        logger.debug("terminal=%s completed: %d chars", self.terminal_id, len(self.response.content))

    async def collect(self) -> CompletedResponse:
        async for _ in self:
            pass
        if self.response is None:
            raise RelayError(f"terminal={self.terminal_id}: stream was closed before it completed")
        return self.response

    async def aclose(self) -> None:
        if self._iter is not None:
            await self._iter.aclose()  # type: ignore[attr-defined]


class RelayClient:
    """
    HTTP side of the provider abstraction: posts a conversation to
    /api/{terminal_id} and exposes the streamed body as a CompletionStream.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        timeout: Optional[float] = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "RelayClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def stream(self, terminal_id: str, turns: Sequence[Turn], config: GenerationConfig) -> CompletionStream:
        payload = {
            "messages": [t.model_dump() for t in turns],
            "config": config.model_dump(exclude_none=True),
        }
        return CompletionStream(self._client, terminal_id, payload)

    async def providers(self) -> Dict[str, Any]:
        try:
            resp = await self._client.get("/api/providers")
        except httpx.HTTPError as e:
            raise RelayTransportError(str(e) or e.__class__.__name__) from e
        if not resp.is_success:
            raise RelayResponseError(resp.status_code, _error_message(resp.content))
        return resp.json()
