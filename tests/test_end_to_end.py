"""The consumer talking to the proxy app, which talks to a fake gateway."""

from __future__ import annotations

import httpx
import pytest
from conftest import Recorder, chunked, sse_body, streaming_response

from flowpulse import constants
from flowpulse.config import ConsumerSettings, ProxySettings
from flowpulse.proxy.api import create_app
from flowpulse.stream import StreamConsumer, StreamState

MESSAGES = [{"role": "user", "content": "Summarise my week"}]


def _consumer(gateway_response: httpx.Response) -> StreamConsumer:
    app = create_app(
        ProxySettings(gateway_url="http://gateway.test/v1", gateway_api_key="gw-key"),
        transport=httpx.MockTransport(lambda request: gateway_response),  # noqa: ARG005
    )
    return StreamConsumer(
        ConsumerSettings(base_url="http://proxy.test", public_api_key="public-key"),
        transport=httpx.ASGITransport(app=app),
    )


@pytest.mark.asyncio
async def test_streamed_reply_reaches_callbacks(recorder: Recorder) -> None:
    fragments = ["Mon: ", "3 calls", ", Tue: ", "report ✅"]
    consumer = _consumer(streaming_response(chunked(sse_body(fragments), 11)))

    result = await consumer.stream_chat(MESSAGES, **recorder.callbacks)

    assert recorder.deltas == fragments
    assert recorder.done == 1
    assert result.state is StreamState.DONE
    assert not result.used_fallback


@pytest.mark.asyncio
async def test_buffered_reply_uses_fallback(recorder: Recorder) -> None:
    completion = {"choices": [{"message": {"role": "assistant", "content": "Quiet week."}}]}
    consumer = _consumer(httpx.Response(200, json=completion))

    result = await consumer.stream_chat(MESSAGES, **recorder.callbacks)

    assert recorder.deltas == ["Quiet week."]
    assert result.used_fallback


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("upstream_status", "message"),
    [
        (429, constants.RATE_LIMIT_MESSAGE),
        (402, constants.PAYMENT_REQUIRED_MESSAGE),
        (503, "Failed to start stream: 500"),
    ],
)
async def test_gateway_errors_reach_on_error(
    upstream_status: int,
    message: str,
    recorder: Recorder,
) -> None:
    consumer = _consumer(httpx.Response(upstream_status, text="nope"))

    result = await consumer.stream_chat(MESSAGES, **recorder.callbacks)

    assert len(recorder.errors) == 1
    assert recorder.errors[0].startswith(message)
    assert recorder.done == 0
    assert result.state is StreamState.ERRORED
    assert not consumer.is_streaming


@pytest.mark.asyncio
async def test_analyst_round_trip(recorder: Recorder) -> None:
    consumer = _consumer(streaming_response([sse_body(["Bullish"])]))

    result = await consumer.analyze_with_ai(
        "How are margins trending?",
        "trends",
        "Acme plc",
        **recorder.callbacks,
    )

    assert result.text == "Bullish"
    assert recorder.done == 1
