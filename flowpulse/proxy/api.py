"""FastAPI application factory for the proxy functions."""

from __future__ import annotations

import asyncio
import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import ValidationError

from flowpulse import constants
from flowpulse.config import ProxySettings
from flowpulse.core.openai_proxy import error_response, forward_chat_completion
from flowpulse.core.sse import SSE_KEEPALIVE, format_chunk, format_done
from flowpulse.proxy.models import ChatRequest, Message
from flowpulse.proxy.prompts import FUNCTIONS, FunctionSpec, build_analyst_prompt
from flowpulse.server.common import log_requests_middleware

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    import httpx

LOGGER = logging.getLogger(__name__)


def build_upstream_payload(
    spec: FunctionSpec,
    chat_request: ChatRequest,
    model: str,
) -> dict[str, Any]:
    """Prepend the function's system prompt and attach its fixed parameters."""
    messages = chat_request.to_messages()
    system_prompt = spec.system_prompt
    if spec.name == "ai-analyst":
        system_prompt, user_prompt = build_analyst_prompt(
            messages[-1].content,
            chat_request.analysis_type,
            chat_request.company,
        )
        messages = [*messages[:-1], Message(role="user", content=user_prompt)]

    payload: dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system_prompt},
            *(m.model_dump() for m in messages),
        ],
        "stream": spec.force_stream or chat_request.stream,
    }
    if spec.temperature is not None:
        payload["temperature"] = spec.temperature
    if spec.max_tokens is not None:
        payload["max_tokens"] = spec.max_tokens
    return payload


async def _parse_body(request: Request) -> ChatRequest | None:
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        chat_request = ChatRequest.model_validate(json.loads(raw))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
        return None
    return chat_request if chat_request.to_messages() else None


def create_app(
    settings: ProxySettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the FastAPI app serving every proxy function."""
    settings = settings or ProxySettings()
    app = FastAPI(title="FlowPulse AI Proxy")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_requests_middleware)

    app.state.settings = settings
    app.state.transport = transport

    @app.post(f"{constants.FUNCTIONS_PREFIX}/{{function_name}}")
    async def invoke_function(request: Request, function_name: str) -> Any:
        spec = FUNCTIONS.get(function_name)
        if spec is None:
            return error_response(HTTPStatus.NOT_FOUND, f"Unknown function: {function_name}")

        chat_request = await _parse_body(request)
        if chat_request is None:
            LOGGER.error("Invalid request: neither messages, message nor query provided")
            return error_response(HTTPStatus.BAD_REQUEST, constants.INVALID_REQUEST_MESSAGE)

        if not settings.gateway_api_key:
            LOGGER.error("Gateway API key is not configured")
            return error_response(
                HTTPStatus.INTERNAL_SERVER_ERROR,
                constants.NOT_CONFIGURED_MESSAGE,
            )

        payload = build_upstream_payload(spec, chat_request, settings.model)
        LOGGER.info(
            "Processing %s request with %d messages (%s)",
            function_name,
            len(payload["messages"]) - 1,
            "streaming" if payload["stream"] else "non-streaming",
        )
        return await forward_chat_completion(
            payload,
            settings.gateway_url,
            settings.gateway_api_key,
            stream=payload["stream"],
            transport=app.state.transport,
            timeout=settings.request_timeout,
        )

    @app.get("/debug/stream")
    async def debug_stream() -> StreamingResponse:
        """Emit a keep-alive, one fragment and the sentinel for smoke tests."""

        async def _gen() -> AsyncGenerator[str, None]:
            yield SSE_KEEPALIVE
            await asyncio.sleep(0.05)
            yield format_chunk("debug", settings.model, content="ok")
            yield format_done()

        return StreamingResponse(_gen(), media_type="text/event-stream")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok" if settings.gateway_api_key else "degraded",
            "gateway_url": settings.gateway_url,
            "model": settings.model,
            "functions": sorted(FUNCTIONS),
        }

    return app
