"""Issue a chat request to a proxy function and assemble the streamed reply.

One request is made per call. The response decides the strategy: a JSON
chat completion is delivered as a single fragment, anything else is read as an
SSE stream and every ``choices[0].delta.content`` fragment is handed to
``on_delta`` in wire order. Exactly one of ``on_done`` / ``on_error`` fires per
call, unless the call is cancelled, in which case neither does.
"""

from __future__ import annotations

import asyncio
import codecs
import enum
import inspect
import json
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from flowpulse.config import ConsumerSettings
from flowpulse.core.sse import (
    DATA_PREFIX,
    FrameKind,
    classify_line,
    extract_content_from_chunk,
    extract_message_content,
    has_choices,
    parse_chunk,
    split_lines,
)
from flowpulse.proxy.models import Message
from flowpulse.stream.errors import (
    ParseError,
    StreamBusyError,
    StreamError,
    TransportError,
    UpstreamError,
    error_for_status,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable

    TokenProvider = Callable[[], str | None | Awaitable[str | None]]

LOGGER = logging.getLogger(__name__)


class StreamState(enum.Enum):
    """Lifecycle of a single ``stream_chat`` call."""

    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"
    CANCELLED = "cancelled"


@dataclass
class StreamResult:
    """Outcome of one ``stream_chat`` call."""

    state: StreamState = StreamState.IDLE
    fragments: list[str] = field(default_factory=list)
    error: str | None = None
    used_fallback: bool = False

    @property
    def text(self) -> str:
        """All fragments delivered to ``on_delta``, joined."""
        return "".join(self.fragments)


class _Cancelled(Exception):  # noqa: N818
    """Internal signal: the caller set the cancel event."""


@dataclass
class _Assembler:
    """Per-call parsing state: line buffer plus a frame awaiting its tail."""

    emit: Callable[[str], None]
    buffer: str = ""
    pending: str | None = None
    done: bool = False

    def feed(self, text: str, cancel_event: asyncio.Event | None) -> None:
        """Consume decoded text, emitting every fragment it completes."""
        framed = split_lines(self.buffer, text)
        self.buffer = framed.remainder
        for line in framed.lines:
            if cancel_event is not None and cancel_event.is_set():
                raise _Cancelled
            self._feed_line(line)
            if self.done:
                return

    def _feed_line(self, line: str) -> None:
        if self.pending is not None:
            stripped = line.removesuffix("\r")
            if _starts_new_frame(stripped):
                LOGGER.debug("Dropping malformed frame: %s", ParseError(self.pending))
                self.pending = None
            else:
                payload, self.pending = self.pending + stripped, None
                self._handle_payload(payload)
                return

        frame = classify_line(line)
        if frame.kind is FrameKind.DONE:
            self.done = True
        elif frame.kind is FrameKind.DATA:
            self._handle_payload(frame.payload)

    def _handle_payload(self, payload: str) -> None:
        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError:
            # Frame cut by a stray newline: keep it until the next line arrives.
            self.pending = payload
            return
        if isinstance(chunk, dict):
            piece = extract_content_from_chunk(chunk)
            if piece:
                self.emit(piece)

    def flush(self) -> None:
        """Best-effort parse of whatever is left once the body has ended."""
        tail = self.buffer.removesuffix("\r")
        self.buffer = ""
        if self.pending is not None:
            if not tail.strip() or _starts_new_frame(tail):
                LOGGER.debug("Dropping malformed frame: %s", ParseError(self.pending))
            else:
                tail = self.pending + tail
            self.pending = None
        tail = tail.strip()
        if not tail:
            return
        chunk = parse_chunk(tail)
        if chunk is None:
            LOGGER.debug("Dropping unparsable stream tail: %s", ParseError(tail))
            return
        piece = extract_content_from_chunk(chunk)
        if piece:
            self.emit(piece)


def _starts_new_frame(line: str) -> bool:
    return not line.strip() or line.startswith((":", DATA_PREFIX.rstrip()))


async def _next_chunk(
    chunks: AsyncIterator[bytes],
    cancel_event: asyncio.Event | None,
) -> bytes:
    """Await the next body chunk, giving up early when the caller cancels."""
    if cancel_event is None:
        return await anext(chunks)
    if cancel_event.is_set():
        raise _Cancelled
    read_task = asyncio.ensure_future(anext(chunks))
    cancel_task = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait(
            {read_task, cancel_task},
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        cancel_task.cancel()
        read_task.cancel()
        await asyncio.gather(read_task, cancel_task, return_exceptions=True)
        raise
    if read_task in done:
        cancel_task.cancel()
        return read_task.result()
    read_task.cancel()
    with suppress(asyncio.CancelledError):
        await read_task
    raise _Cancelled


def _describe(exc: Exception) -> str:
    if isinstance(exc, StreamError):
        return exc.user_message
    if isinstance(exc, httpx.TimeoutException):
        return f"Request timed out: {exc}" if str(exc) else "Request timed out"
    return str(exc) or type(exc).__name__


class StreamConsumer:
    """Stream chat completions from a proxy function.

    An instance serves one stream at a time; ``is_streaming`` is meant for the
    caller's UI (e.g. to disable a send button).
    """

    def __init__(
        self,
        settings: ConsumerSettings | None = None,
        *,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or ConsumerSettings()
        self.token_provider = token_provider
        self.transport = transport
        self.state = StreamState.IDLE

    @property
    def is_streaming(self) -> bool:
        """True while a call is in flight."""
        return self.state is StreamState.STREAMING

    async def _headers(self) -> dict[str, str]:
        token = None
        if self.token_provider is not None:
            token = self.token_provider()
            if inspect.isawaitable(token):
                token = await token
        token = token or self.settings.public_api_key
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self.settings.public_api_key:
            headers["apikey"] = self.settings.public_api_key
        return headers

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.settings.read_timeout, connect=self.settings.connect_timeout)

    async def stream_chat(
        self,
        messages: Iterable[Message | dict[str, str]],
        *,
        on_delta: Callable[[str], None],
        on_done: Callable[[], None],
        on_error: Callable[[str], None],
        function_name: str | None = None,
        extra: dict[str, Any] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> StreamResult:
        """Send ``messages`` and deliver the reply through the callbacks."""
        body: dict[str, Any] = {
            "messages": [Message.model_validate(m).model_dump() for m in messages],
            "stream": True,
        }
        if extra:
            body.update(extra)
        return await self._run(
            body,
            function_name=function_name,
            on_delta=on_delta,
            on_done=on_done,
            on_error=on_error,
            cancel_event=cancel_event,
        )

    async def analyze_with_ai(
        self,
        query: str,
        analysis_type: str,
        company: str | None = None,
        *,
        on_delta: Callable[[str], None],
        on_done: Callable[[], None],
        on_error: Callable[[str], None],
        cancel_event: asyncio.Event | None = None,
    ) -> StreamResult:
        """Ask the ``ai-analyst`` function a question about a company or market."""
        body: dict[str, Any] = {"query": query, "analysisType": analysis_type, "stream": True}
        if company:
            body["company"] = company
        return await self._run(
            body,
            function_name="ai-analyst",
            on_delta=on_delta,
            on_done=on_done,
            on_error=on_error,
            cancel_event=cancel_event,
        )

    async def _run(
        self,
        body: dict[str, Any],
        *,
        function_name: str | None,
        on_delta: Callable[[str], None],
        on_done: Callable[[], None],
        on_error: Callable[[str], None],
        cancel_event: asyncio.Event | None,
    ) -> StreamResult:
        if self.is_streaming:
            msg = "A stream is already in flight on this consumer"
            raise StreamBusyError(msg)

        self.state = StreamState.STREAMING
        result = StreamResult(state=StreamState.STREAMING)

        def emit(piece: str) -> None:
            result.fragments.append(piece)
            on_delta(piece)

        try:
            await self._request(body, function_name, emit, result, cancel_event)
        except _Cancelled:
            LOGGER.info("Stream cancelled after %d fragments", len(result.fragments))
            result.state = StreamState.CANCELLED
        except asyncio.CancelledError:
            LOGGER.info("Stream task cancelled after %d fragments", len(result.fragments))
            result.state = StreamState.CANCELLED
            raise
        except Exception as exc:
            if not isinstance(exc, (StreamError, httpx.HTTPError)):
                LOGGER.exception("Unexpected error while streaming")
            else:
                LOGGER.warning("Stream failed: %s", exc)
            result.state = StreamState.ERRORED
            result.error = _describe(exc)
            on_error(result.error)
        else:
            result.state = StreamState.DONE
            on_done()
        finally:
            if result.state is StreamState.STREAMING:
                result.state = StreamState.CANCELLED
            self.state = result.state
        return result

    async def _request(
        self,
        body: dict[str, Any],
        function_name: str | None,
        emit: Callable[[str], None],
        result: StreamResult,
        cancel_event: asyncio.Event | None,
    ) -> None:
        url = self.settings.function_url(function_name)
        headers = await self._headers()
        async with (
            httpx.AsyncClient(timeout=self._timeout(), transport=self.transport) as client,
            client.stream("POST", url, json=body, headers=headers) as response,
        ):
            if response.status_code >= 400:  # noqa: PLR2004
                error_text = (await response.aread()).decode(errors="replace")
                LOGGER.error("Stream error %s: %s", response.status_code, error_text)
                raise error_for_status(response.status_code, error_text)

            if "application/json" in response.headers.get("content-type", ""):
                result.used_fallback = True
                await self._deliver_json(response, emit)
                return

            if response.status_code == 204 or response.headers.get("content-length") == "0":  # noqa: PLR2004
                msg = "No response body"
                raise TransportError(msg)

            await self._read_stream(response, emit, cancel_event)

    async def _deliver_json(self, response: httpx.Response, emit: Callable[[str], None]) -> None:
        raw = await response.aread()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise UpstreamError(response.status_code, raw.decode(errors="replace")) from exc
        if not has_choices(data):
            raise UpstreamError(response.status_code, raw.decode(errors="replace"))
        content = extract_message_content(data)
        if content:
            emit(content)

    async def _read_stream(
        self,
        response: httpx.Response,
        emit: Callable[[str], None],
        cancel_event: asyncio.Event | None,
    ) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        assembler = _Assembler(emit)
        chunks = response.aiter_bytes()
        try:
            while not assembler.done:
                try:
                    raw = await _next_chunk(chunks, cancel_event)
                except StopAsyncIteration:
                    break
                except httpx.TransportError as exc:
                    raise TransportError(_describe(exc)) from exc
                assembler.feed(decoder.decode(raw), cancel_event)
            if not assembler.done:
                assembler.feed(decoder.decode(b"", final=True), cancel_event)
                if not assembler.done:
                    assembler.flush()
        finally:
            await chunks.aclose()


async def stream_chat(
    messages: Iterable[Message | dict[str, str]],
    *,
    on_delta: Callable[[str], None],
    on_done: Callable[[], None],
    on_error: Callable[[str], None],
    settings: ConsumerSettings | None = None,
    token_provider: TokenProvider | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    cancel_event: asyncio.Event | None = None,
) -> StreamResult:
    """Stream a single chat exchange with a throwaway consumer."""
    consumer = StreamConsumer(settings, token_provider=token_provider, transport=transport)
    return await consumer.stream_chat(
        messages,
        on_delta=on_delta,
        on_done=on_done,
        on_error=on_error,
        cancel_event=cancel_event,
    )
