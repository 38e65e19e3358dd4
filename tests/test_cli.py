"""Tests for the CLI."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from flowpulse import constants
from flowpulse.cli import app
from flowpulse.stream.consumer import StreamResult, StreamState

if TYPE_CHECKING:
    from collections.abc import Iterator

runner = CliRunner(env={"NO_COLOR": "1", "TERM": "dumb"})


class FakeConsumer:
    """Stands in for StreamConsumer and replays a scripted outcome."""

    fragments: list[str] = ["Hello", " world"]
    error: str | None = None
    calls: list[tuple[str, dict[str, Any]]] = []

    def __init__(self, settings: Any, **kwargs: Any) -> None:
        self.settings = settings
        self.kwargs = kwargs

    async def _play(self, on_delta: Any, on_done: Any, on_error: Any) -> StreamResult:
        for piece in self.fragments:
            on_delta(piece)
        if self.error:
            on_error(self.error)
            return StreamResult(StreamState.ERRORED, list(self.fragments), self.error)
        on_done()
        return StreamResult(StreamState.DONE, list(self.fragments))

    async def stream_chat(self, messages: Any, **kwargs: Any) -> StreamResult:
        self.calls.append(("stream_chat", {"messages": messages, **kwargs}))
        return await self._play(kwargs["on_delta"], kwargs["on_done"], kwargs["on_error"])

    async def analyze_with_ai(
        self,
        query: str,
        analysis_type: str,
        company: Any,
        **kwargs: Any,
    ) -> StreamResult:
        self.calls.append(
            ("analyze_with_ai", {"query": query, "analysis_type": analysis_type, "company": company}),
        )
        return await self._play(kwargs["on_delta"], kwargs["on_done"], kwargs["on_error"])


@pytest.fixture
def fake_consumer() -> Iterator[type[FakeConsumer]]:
    FakeConsumer.fragments = ["Hello", " world"]
    FakeConsumer.error = None
    FakeConsumer.calls = []
    with patch("flowpulse.agents.chat.StreamConsumer", FakeConsumer):
        yield FakeConsumer


def test_main_no_args() -> None:
    """Test the main function with no arguments."""
    result = runner.invoke(app)
    assert "No command specified" in result.stdout
    assert "Usage" in result.stdout


def test_main_help() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "proxy" in result.stdout
    assert "chat" in result.stdout


@patch("uvicorn.run")
def test_proxy_command(mock_uvicorn_run: pytest.MagicMock) -> None:
    """Test the proxy command starts uvicorn with the requested address."""
    result = runner.invoke(
        app,
        ["proxy", "--gateway-api-key", "secret", "--host", "127.0.0.1", "--port", "8080"],
    )
    assert result.exit_code == 0, result.output
    assert "Starting FlowPulse AI proxy on 127.0.0.1:8080" in result.stdout
    assert "secret" not in result.stdout
    mock_uvicorn_run.assert_called_once()
    assert mock_uvicorn_run.call_args.kwargs["host"] == "127.0.0.1"
    assert mock_uvicorn_run.call_args.kwargs["port"] == 8080


@patch("uvicorn.run")
def test_proxy_command_requires_key(mock_uvicorn_run: pytest.MagicMock) -> None:
    result = runner.invoke(app, ["proxy"], env={"AI_GATEWAY_API_KEY": None})
    assert result.exit_code == 1
    assert "No gateway API key configured" in result.output
    mock_uvicorn_run.assert_not_called()


def test_chat_quiet_prints_answer(fake_consumer: type[FakeConsumer]) -> None:
    result = runner.invoke(app, ["chat", "Hi there", "--quiet"])
    assert result.exit_code == 0, result.output
    assert "Hello world" in result.stdout
    [(name, call)] = fake_consumer.calls
    assert name == "stream_chat"
    assert call["messages"] == [{"role": "user", "content": "Hi there"}]
    assert call["function_name"] == constants.DEFAULT_FUNCTION


def test_chat_prints_result_panel(fake_consumer: type[FakeConsumer]) -> None:
    result = runner.invoke(app, ["chat", "Hi there", "--function", "business-chat"])
    assert result.exit_code == 0, result.output
    assert "Result" in result.stdout
    assert "Hello world" in result.stdout
    assert fake_consumer.calls[0][1]["function_name"] == "business-chat"


def test_chat_analyst_mode(fake_consumer: type[FakeConsumer]) -> None:
    result = runner.invoke(
        app,
        ["chat", "Margins?", "--analysis-type", "valuation", "--company", "Acme", "-q"],
    )
    assert result.exit_code == 0, result.output
    assert fake_consumer.calls == [
        ("analyze_with_ai", {"query": "Margins?", "analysis_type": "valuation", "company": "Acme"}),
    ]


def test_chat_error_exits_nonzero(fake_consumer: type[FakeConsumer]) -> None:
    fake_consumer.fragments = []
    fake_consumer.error = constants.RATE_LIMIT_MESSAGE
    result = runner.invoke(app, ["chat", "Hi there"])
    assert result.exit_code == 1
    assert "Rate limit exceeded" in result.output


@patch("pyperclip.copy")
def test_chat_clipboard(mock_copy: pytest.MagicMock, fake_consumer: type[FakeConsumer]) -> None:  # noqa: ARG001
    result = runner.invoke(app, ["chat", "Hi there", "--clipboard", "-q"])
    assert result.exit_code == 0, result.output
    mock_copy.assert_called_once_with("Hello world")


@patch("uvicorn.run")
@patch("flowpulse.proxy.api.create_app")
def test_proxy_request_timeout_defaults_to_gateway_timeout(
    mock_create_app: pytest.MagicMock,
    mock_uvicorn_run: pytest.MagicMock,
) -> None:
    result = runner.invoke(app, ["proxy", "--gateway-api-key", "secret"])
    assert result.exit_code == 0, result.output
    settings = mock_create_app.call_args.args[0]
    assert settings.request_timeout == constants.DEFAULT_GATEWAY_TIMEOUT
    assert mock_uvicorn_run.call_args.args[0] is mock_create_app.return_value


@patch("flowpulse.agents.chat.setup_rich_logging")
def test_chat_uses_rich_logging(
    mock_setup_logging: pytest.MagicMock,
    fake_consumer: type[FakeConsumer],  # noqa: ARG001
) -> None:
    result = runner.invoke(app, ["chat", "Hi there", "-q", "--log-level", "DEBUG"])
    assert result.exit_code == 0, result.output
    mock_setup_logging.assert_called_once()
    assert mock_setup_logging.call_args.args == ("DEBUG",)
    assert "console" in mock_setup_logging.call_args.kwargs
