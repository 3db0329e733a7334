from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field

from termchat.bootstrap import build_app
from termchat.core.errors import ProviderNotConfiguredError, UnsupportedProviderError
from termchat.core.models import GenerationConfig, Turn
from termchat.core.relay import StreamRelay

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to generate response"


class RelayRequest(BaseModel):
    messages: List[Turn] = Field(..., min_length=1)
    config: Optional[GenerationConfig] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def _encode(fragments: AsyncIterator[str]) -> AsyncIterator[bytes]:
    async for piece in fragments:
        yield piece.encode("utf-8")


def create_app(
    config_path: Optional[Path] = None,
    *,
    relay: Optional[StreamRelay] = None,
) -> FastAPI:
    """
    Build the relay app either from a YAML config (composition root) or from a
    ready StreamRelay (tests, embedding).
    """
    warnings = []
    if relay is None:
        if config_path is None:
            raise ValueError("create_app needs a config_path or a relay")
        ctx = build_app(Path(config_path))
        relay = ctx["relay"]
        warnings = ctx["warnings"]

    app = FastAPI(title="termchat relay")
    app.state.relay = relay
    app.state.warnings = warnings

    @app.exception_handler(RequestValidationError)
    async def _invalid_body(_request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
            for err in exc.errors()
        )
        return _error(422, f"Invalid request: {problems}")

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/api/providers")
    async def api_providers():
        return {
            "providers": relay.available_providers(),
            "default": relay.default_provider,
        }

    @app.post("/api/{terminal_id}")
    async def api_relay(terminal_id: str, req: RelayRequest):
        try:
            fragments = await relay.open_stream(req.messages, req.config, terminal_id=terminal_id)
        except ProviderNotConfiguredError as e:
            logger.warning("terminal=%s %s", terminal_id, e)
            return _error(500, str(e))
        except UnsupportedProviderError as e:
            logger.warning("terminal=%s %s", terminal_id, e)
            return _error(400, str(e))
        except Exception:
            # Details are logged by the relay; the client only gets a generic message
            return _error(500, GENERIC_FAILURE)

        return StreamingResponse(
            _encode(fragments),
            media_type="text/plain; charset=utf-8",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return app


def run(
    *,
    config: Path,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    import uvicorn

    ctx = build_app(Path(config))
    server_cfg = ctx["cfg"]["server"]
    app = create_app(relay=ctx["relay"])
    app.state.warnings = ctx["warnings"]
    uvicorn.run(app, host=host or server_cfg["host"], port=port or server_cfg["port"])
