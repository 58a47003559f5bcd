"""FastAPI application exposing the skill webhook."""
from __future__ import annotations

import gzip
import logging
import time
import zlib
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.gzip import GZipMiddleware

from .config import load_config
from .dispatcher import SkillDispatcher
from .errors import DecodeFailure, SkillError
from .store import Clock, MailboxStore, create_store

logger = logging.getLogger(__name__)
http_logger = logging.getLogger("mail_skill.http")

# The dispatcher decides which verb is acceptable, so the route takes them all.
WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


# -----------------------------
# Utilities
# -----------------------------
def _decode_body(raw: bytes, content_encoding: str) -> bytes:
    if "gzip" not in content_encoding.lower():
        return raw
    try:
        return gzip.decompress(raw)
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeFailure(f"cannot decompress gzip body: {e}") from e


def _make_store(cfg: Dict[str, Any], clock: Optional[Clock]):
    store = create_store(cfg, clock=clock)
    store.bootstrap()
    return store


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    store: Optional[MailboxStore] = None,
    dispatcher: Optional[SkillDispatcher] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    cfg = load_config(config_path)
    server_cfg = cfg.get("server", {})

    # Services. Only a store built here is closed on shutdown.
    owned_store = None
    if dispatcher is None:
        if store is None:
            store = owned_store = _make_store(cfg, clock)
        dispatcher = SkillDispatcher(store, clock=clock)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        if owned_store is not None:
            owned_store.close()
            logger.info("Mailbox store closed")

    app = FastAPI(title="Voice Mailbox Skill", version="0.1.0", lifespan=lifespan)
    app.add_middleware(GZipMiddleware, minimum_size=int(server_cfg.get("gzip_min_size", 1024)))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        http_logger.info(
            "%s %s -> %d in %.1fms (%s bytes)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000.0,
            response.headers.get("content-length", "?"),
        )
        return response

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {
            "ok": True,
            "store": type(dispatcher.store).__name__,
        }

    @app.api_route(str(server_cfg.get("webhook_path", "/")), methods=WEBHOOK_METHODS)
    async def webhook(request: Request) -> Response:
        raw = await request.body()
        try:
            body = _decode_body(raw, request.headers.get("content-encoding", ""))
            # store calls block; keep them off the event loop
            result = await run_in_threadpool(dispatcher.handle, request.method, body)
        except SkillError as e:
            return Response(status_code=e.status_code)
        except Exception:
            # error responses never carry a body
            logger.exception("unhandled error in webhook")
            return Response(status_code=500)

        logger.debug("sending HTTP 200 response")
        return JSONResponse(result.model_dump())

    return app
