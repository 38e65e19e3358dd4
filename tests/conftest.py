"""Shared test fixtures and configuration."""

from __future__ import annotations

import contextlib
import io
import json
from collections.abc import AsyncIterator, Callable, Iterable

import httpx
import pytest
from rich.console import Console


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Set default timeout for all tests."""
    for item in items:
        with contextlib.suppress(AttributeError):
            item.add_marker(pytest.mark.timeout(3))


@pytest.fixture
def mock_console() -> Console:
    """Provide a console that writes to a StringIO for testing."""
    return Console(file=io.StringIO(), width=80, force_terminal=True)


def delta_frame(content: str) -> str:
    """One streaming data frame carrying ``content``."""
    payload = json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False)
    return f"data: {payload}\n"


def sse_body(fragments: Iterable[str], *, done: bool = True) -> bytes:
    """Encode fragments as a complete SSE body."""
    body = "".join(delta_frame(f) for f in fragments)
    if done:
        body += "data: [DONE]\n"
    return body.encode()


def chunked(data: bytes, size: int) -> list[bytes]:
    """Split ``data`` into pieces of ``size`` bytes."""
    return [data[i : i + size] for i in range(0, len(data), size)]


async def _iterate(chunks: Iterable[bytes]) -> AsyncIterator[bytes]:
    for chunk in chunks:
        yield chunk


def streaming_response(chunks: Iterable[bytes], status_code: int = 200) -> httpx.Response:
    """An event-stream response whose body arrives in exactly these reads."""
    return httpx.Response(
        status_code,
        headers={"content-type": "text/event-stream"},
        content=_iterate(chunks),
    )


class Recorder:
    """Collects consumer callbacks."""

    def __init__(self) -> None:
        self.deltas: list[str] = []
        self.done = 0
        self.errors: list[str] = []

    def on_delta(self, piece: str) -> None:
        self.deltas.append(piece)

    def on_done(self) -> None:
        self.done += 1

    def on_error(self, message: str) -> None:
        self.errors.append(message)

    @property
    def callbacks(self) -> dict[str, Callable[..., None]]:
        return {"on_delta": self.on_delta, "on_done": self.on_done, "on_error": self.on_error}


@pytest.fixture
def recorder() -> Recorder:
    """Fresh callback recorder."""
    return Recorder()
