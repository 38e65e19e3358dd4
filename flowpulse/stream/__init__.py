"""Client-side consumer for streamed chat completions."""

from __future__ import annotations

from flowpulse.stream.consumer import StreamConsumer, StreamResult, StreamState, stream_chat
from flowpulse.stream.errors import (
    ParseError,
    PaymentRequired,
    RateLimited,
    StreamBusyError,
    StreamError,
    TransportError,
    UpstreamError,
)

__all__ = [
    "ParseError",
    "PaymentRequired",
    "RateLimited",
    "StreamBusyError",
    "StreamConsumer",
    "StreamError",
    "StreamResult",
    "StreamState",
    "TransportError",
    "UpstreamError",
    "stream_chat",
]
