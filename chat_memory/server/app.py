"""HTTP API for chat-memory.

Thin FastAPI layer over :class:`MemoryManager`. Turn processing is blocking
(httpx + sqlite), so each request hands it to the threadpool; concurrent
requests for one thread id are serialized inside the manager.

Usage:
    chat-memory -c chat-memory.yaml serve --port 8787
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from ..config import load_config
from ..manager import MemoryManager
from ..personas import list_personas
from ..translator import Translator
from ..types import ChatMemoryConfig, InvalidTurnError, ServiceError
from .metrics import ServerMetrics

logger = logging.getLogger(__name__)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status_code)


def _message_count(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


async def _json_body(request: Request) -> dict | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def create_app(
    config_path: str | Path | None = None,
    *,
    config: ChatMemoryConfig | None = None,
    manager: MemoryManager | None = None,
    translator: Translator | None = None,
    metrics: ServerMetrics | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config_path: Path to a chat-memory config file (auto-discovered if None).
        config: Pre-built config; takes precedence over ``config_path``.
        manager: Reuse an existing MemoryManager (tests, embedding).
        translator: Reuse an existing Translator.
        metrics: Reuse an existing metrics collector.

    Raises:
        ConfigError: when the completion gateway cannot be built (e.g. no API
            key). This is fatal for the service, not a per-request error.
    """
    if config is None:
        config = manager.config if manager is not None else load_config(config_path)
    if manager is None:
        manager = MemoryManager.from_config(config)
    if translator is None:
        translator = Translator(manager.gateway, config.translation)
    metrics = metrics or ServerMetrics()

    logger.info(
        "Chat memory ready: storage=%s, threshold=%d chars, serialize_turns=%s",
        config.storage.backend,
        config.memory.compaction_threshold,
        config.memory.serialize_turns,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        yield
        manager.close()

    app = FastAPI(title="chat-memory", lifespan=lifespan)
    app.state.manager = manager
    app.state.metrics = metrics

    if config.server.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.post("/ai/chat")
    async def chat(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Request body must be a JSON object", 400)

        user_id = body.get("userId")
        chat_id = body.get("chatId")
        persona_id = body.get("aiFriendId")
        user_message = body.get("userMessage")
        if not user_id or not chat_id or not persona_id or not user_message:
            return _error(
                "Missing required fields: userId, chatId, aiFriendId, userMessage", 400
            )

        started = time.monotonic()
        try:
            result = await run_in_threadpool(
                manager.process_turn,
                str(chat_id),
                str(user_id),
                str(persona_id),
                str(user_message),
                _message_count(body.get("totalMessageCount")),
            )
        except InvalidTurnError as e:
            return _error(str(e), 400)
        except ServiceError as e:
            metrics.record({"type": "reply_failed", "thread_id": str(chat_id)})
            return _error(str(e), 500)
        except Exception as e:
            logger.exception("AI chat error for %s", chat_id)
            return _error(str(e) or "Internal server error", 500)

        metrics.record_turn(str(chat_id), result, (time.monotonic() - started) * 1000)
        return {
            "success": True,
            "message": result.reply,
            "timestamp": result.timestamp.isoformat(),
        }

    @app.get("/ai/friends")
    async def friends():
        return {"success": True, "friends": list_personas()}

    @app.post("/ai/translate")
    async def translate(request: Request):
        body = await _json_body(request)
        if body is None:
            return _error("Request body must be a JSON object", 400)

        text = body.get("text")
        if not text:
            return _error("Missing required field: text", 400)
        target_language = body.get("targetLanguage", "ko")

        try:
            translated = await run_in_threadpool(
                translator.translate, str(text), body.get("aiFriendId"),
            )
        except ServiceError as e:
            return _error(str(e), 500)
        except Exception as e:
            logger.exception("Translation error")
            return _error(str(e) or "Internal server error", 500)

        return {
            "success": True,
            "translatedText": translated,
            "originalText": text,
            "targetLanguage": target_language,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/metrics")
    async def metrics_snapshot():
        return metrics.snapshot()

    return app
