"""Stream one prompt through a running proxy and print the answer as it arrives."""

from __future__ import annotations

import asyncio
import logging
import signal
import time
from contextlib import suppress

import typer
from rich.live import Live
from rich.markdown import Markdown

from flowpulse import constants, opts
from flowpulse.cli import app
from flowpulse.config import ConsumerSettings
from flowpulse.core.utils import (
    console,
    print_command_line_args,
    print_error_message,
    print_output_panel,
)
from flowpulse.server.common import setup_rich_logging
from flowpulse.stream.consumer import StreamConsumer, StreamResult, StreamState

LOGGER = logging.getLogger(__name__)


async def _run_chat(
    consumer: StreamConsumer,
    prompt: str,
    *,
    function_name: str,
    analysis_type: str | None,
    company: str | None,
    quiet: bool,
) -> tuple[StreamResult, str | None]:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)

    errors: list[str] = []
    with Live(console=console, refresh_per_second=8, transient=True) as live:
        text: list[str] = []

        def on_delta(piece: str) -> None:
            text.append(piece)
            if not quiet:
                live.update(Markdown("".join(text)))

        def on_done() -> None:
            LOGGER.debug("Stream finished with %d fragments", len(text))

        try:
            if analysis_type:
                result = await consumer.analyze_with_ai(
                    prompt,
                    analysis_type,
                    company,
                    on_delta=on_delta,
                    on_done=on_done,
                    on_error=errors.append,
                    cancel_event=cancel_event,
                )
            else:
                result = await consumer.stream_chat(
                    [{"role": "user", "content": prompt}],
                    on_delta=on_delta,
                    on_done=on_done,
                    on_error=errors.append,
                    function_name=function_name,
                    cancel_event=cancel_event,
                )
        finally:
            with suppress(NotImplementedError):
                loop.remove_signal_handler(signal.SIGINT)
    return result, errors[0] if errors else None


@app.command("chat")
def chat(
    prompt: str = typer.Argument(..., help="The message to send."),
    function_name: str = typer.Option(
        constants.DEFAULT_FUNCTION,
        "--function",
        "-f",
        help="Proxy function to call (financial-chat, business-chat, ai-analyst).",
        rich_help_panel="Request Options",
    ),
    analysis_type: str | None = typer.Option(
        None,
        "--analysis-type",
        help="Analyst mode (company-qa, trends, research-summary, qa-filings, swot, valuation).",
        rich_help_panel="Request Options",
    ),
    company: str | None = typer.Option(
        None,
        "--company",
        help="Company the analyst should focus on.",
        rich_help_panel="Request Options",
    ),
    base_url: str = opts.BASE_URL,
    public_api_key: str | None = opts.PUBLIC_API_KEY,
    access_token: str | None = opts.ACCESS_TOKEN,
    read_timeout: float = opts.READ_TIMEOUT,
    quiet: bool = opts.QUIET,
    clipboard: bool = opts.CLIPBOARD,
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Stream a reply from a FlowPulse proxy function.

    Fragments are rendered as they arrive. Press Ctrl-C to stop reading;
    whatever arrived so far is kept.
    """
    if print_args:
        print_command_line_args(locals())
    setup_rich_logging(log_level, console=console)

    settings = ConsumerSettings(
        base_url=base_url,
        public_api_key=public_api_key,
        function_name=function_name,
        read_timeout=read_timeout,
    )
    consumer = StreamConsumer(settings, token_provider=lambda: access_token)

    start_time = time.monotonic()
    result, error = asyncio.run(
        _run_chat(
            consumer,
            prompt,
            function_name=function_name,
            analysis_type=analysis_type,
            company=company,
            quiet=quiet,
        ),
    )
    elapsed = time.monotonic() - start_time

    if result.state is StreamState.ERRORED:
        print_error_message(error or "Unknown error", f"Is the proxy running at {settings.base_url}?")
        raise typer.Exit(1)

    if clipboard and result.text:
        import pyperclip  # noqa: PLC0415

        pyperclip.copy(result.text)
        LOGGER.info("Copied result to clipboard.")

    if quiet:
        print(result.text)
        return

    subtitle = f"[dim]took {elapsed:.2f}s[/dim]"
    if result.state is StreamState.CANCELLED:
        subtitle = f"[yellow]cancelled[/yellow] {subtitle}"
    print_output_panel(result.text or "[dim](empty reply)[/dim]", title="✨ Result", subtitle=subtitle)
