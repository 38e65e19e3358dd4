"""Forward chat-completion payloads to an OpenAI-compatible gateway."""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any

import httpx
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.background import BackgroundTask

from flowpulse import constants
from flowpulse.proxy.models import ErrorEnvelope

logger = logging.getLogger("flowpulse.core.openai_proxy")


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build an ``{"error": ...}`` response."""
    return JSONResponse(ErrorEnvelope(error=message).model_dump(), status_code=status_code)


def map_upstream_error(status_code: int, body: str) -> JSONResponse:
    """Translate a failed gateway status into the status the clients expect.

    Only 429 and 402 pass through; everything else becomes a 500.
    """
    if status_code == HTTPStatus.TOO_MANY_REQUESTS:
        return error_response(status_code, constants.RATE_LIMIT_MESSAGE)
    if status_code == HTTPStatus.PAYMENT_REQUIRED:
        return error_response(status_code, constants.PAYMENT_REQUIRED_MESSAGE)
    logger.error("AI gateway error %s: %s", status_code, body)
    return error_response(
        HTTPStatus.INTERNAL_SERVER_ERROR,
        f"AI gateway error: {status_code}",
    )


async def _close(response: httpx.Response, client: httpx.AsyncClient) -> None:
    await response.aclose()
    await client.aclose()


async def forward_chat_completion(
    payload: dict[str, Any],
    gateway_url: str,
    api_key: str,
    *,
    stream: bool,
    transport: httpx.AsyncBaseTransport | None = None,
    timeout: float = constants.DEFAULT_GATEWAY_TIMEOUT,
) -> JSONResponse | StreamingResponse:
    """POST ``payload`` to ``<gateway_url>/chat/completions`` and relay the answer.

    Streaming answers are relayed frame-for-frame with any content encoding
    removed; the upstream connection stays open until the relay finishes.
    Buffered answers are forwarded as parsed JSON.
    """
    client = httpx.AsyncClient(timeout=timeout, transport=transport)
    request = client.build_request(
        "POST",
        f"{gateway_url.rstrip('/')}/chat/completions",
        json=payload,
        headers={"Authorization": f"Bearer {api_key}"},
    )
    try:
        response = await client.send(request, stream=True)
    except httpx.HTTPError as exc:
        await client.aclose()
        logger.exception("Could not reach AI gateway")
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, str(exc) or type(exc).__name__)

    if not response.is_success:
        error_text = (await response.aread()).decode(errors="replace")
        await _close(response, client)
        return map_upstream_error(response.status_code, error_text)

    if stream:
        return StreamingResponse(
            response.aiter_bytes(),
            status_code=HTTPStatus.OK,
            media_type="text/event-stream",
            background=BackgroundTask(_close, response, client),
        )

    try:
        raw = await response.aread()
    finally:
        await _close(response, client)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("AI gateway returned invalid JSON: %s", raw[:500])  # noqa: TRY400
        return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, "AI gateway returned invalid JSON")
    logger.info("AI response received successfully")
    return JSONResponse(data)
