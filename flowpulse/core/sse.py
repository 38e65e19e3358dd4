"""Server-Sent-Events framing helpers for OpenAI-compatible chat streams.

The wire format is newline-delimited::

    : keep-alive
    data: {"choices":[{"delta":{"content":"Hel"}}]}
    data: {"choices":[{"delta":{"content":"lo"}}]}
    data: [DONE]

Lines are only ever interpreted once their terminating ``\\n`` has arrived;
everything here is synchronous and free of I/O so it can be tested without a
network.
"""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass
from typing import Any, NamedTuple

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"
SSE_KEEPALIVE = ": keep-alive\n\n"


class FramedLines(NamedTuple):
    """Complete lines cut from a buffer plus the unterminated remainder."""

    lines: list[str]
    remainder: str


def split_lines(buffer: str, chunk: str) -> FramedLines:
    """Append ``chunk`` to ``buffer`` and cut off every complete line.

    Returned lines do not include the ``\\n``. The remainder is whatever
    follows the last newline and must be passed back in as ``buffer`` on the
    next call.
    """
    text = buffer + chunk
    *lines, remainder = text.split("\n")
    return FramedLines(lines, remainder)


class FrameKind(enum.Enum):
    """What a single protocol line means to the consumer."""

    SKIP = "skip"
    DONE = "done"
    DATA = "data"


@dataclass(frozen=True)
class Frame:
    """A classified protocol line."""

    kind: FrameKind
    payload: str = ""


_SKIP = Frame(FrameKind.SKIP)


def classify_line(line: str) -> Frame:
    """Classify one line (without its ``\\n``).

    Empty lines, ``:`` comments and anything not starting with ``data: `` are
    skipped. A ``data: `` line yields its stripped payload, or ``DONE`` for the
    sentinel.
    """
    if line.endswith("\r"):
        line = line[:-1]
    if not line.strip() or line.startswith(":"):
        return _SKIP
    if not line.startswith(DATA_PREFIX):
        return _SKIP
    payload = line[len(DATA_PREFIX) :].strip()
    if payload == DONE_SENTINEL:
        return Frame(FrameKind.DONE)
    return Frame(FrameKind.DATA, payload)


def parse_chunk(payload: str) -> dict[str, Any] | None:
    """Parse a data payload into a dict, or return None for non-JSON input.

    Accepts a raw ``data: ...`` line as well as an already stripped payload.
    """
    if payload.startswith("data:"):
        payload = payload[5:].strip()
    if not payload or payload == DONE_SENTINEL:
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _first_choice(chunk: dict[str, Any]) -> dict[str, Any]:
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return {}
    return choices[0]


def extract_content_from_chunk(chunk: dict[str, Any]) -> str | None:
    """Return ``choices[0].delta.content`` if present and non-empty."""
    delta = _first_choice(chunk).get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


def extract_message_content(body: dict[str, Any]) -> str | None:
    """Return ``choices[0].message.content`` from a non-streaming completion."""
    message = _first_choice(body).get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content else None


def has_choices(body: Any) -> bool:
    """Check whether a decoded JSON body looks like a chat completion."""
    return isinstance(body, dict) and isinstance(body.get("choices"), list)


def format_chunk(
    run_id: str,
    model: str,
    *,
    content: str | None = None,
    finish_reason: str | None = None,
    extra: dict[str, Any] | None = None,
) -> str:
    """Format a ``chat.completion.chunk`` as one SSE data frame."""
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    data: dict[str, Any] = {
        "id": f"chatcmpl-{run_id}",
        "object": "chat.completion.chunk",
        "created": int(time.time()),
        "model": model,
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }
    if extra:
        data.update(extra)
    return f"{DATA_PREFIX}{json.dumps(data)}\n\n"


def format_done() -> str:
    """Format the terminal sentinel frame."""
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"
