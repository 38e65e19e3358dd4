"""Proxy server command."""

from __future__ import annotations

import typer

from flowpulse import constants, opts
from flowpulse.cli import app
from flowpulse.core.utils import (
    console,
    print_command_line_args,
    print_error_message,
)


@app.command("proxy")
def proxy(
    gateway_url: str = opts.GATEWAY_URL,
    gateway_api_key: str | None = opts.GATEWAY_API_KEY,
    model: str = opts.MODEL,
    request_timeout: float = typer.Option(
        constants.DEFAULT_GATEWAY_TIMEOUT,
        "--request-timeout",
        help="Timeout in seconds for each upstream request.",
        rich_help_panel="Gateway Configuration",
    ),
    host: str = opts.SERVER_HOST,
    port: int = opts.SERVER_PORT,
    log_level: str = opts.LOG_LEVEL,
    config_file: str | None = opts.CONFIG_FILE,
    print_args: bool = opts.PRINT_ARGS,
) -> None:
    """Start the FlowPulse AI proxy.

    The proxy keeps the gateway credential server-side, prepends each
    function's system prompt and relays the gateway's answer, streamed or
    buffered, back to the browser with permissive CORS headers.
    """
    if print_args:
        print_command_line_args(locals())

    from flowpulse.config import ProxySettings  # noqa: PLC0415
    from flowpulse.server.common import setup_rich_logging  # noqa: PLC0415

    setup_rich_logging(log_level, console=console)

    if not gateway_api_key:
        print_error_message(
            "No gateway API key configured.",
            "Set AI_GATEWAY_API_KEY or pass --gateway-api-key.",
        )
        raise typer.Exit(1)

    import uvicorn  # noqa: PLC0415

    from flowpulse.proxy.api import create_app  # noqa: PLC0415

    settings = ProxySettings(
        gateway_url=gateway_url,
        gateway_api_key=gateway_api_key,
        model=model,
        request_timeout=request_timeout,
    )

    console.print(f"[bold green]Starting FlowPulse AI proxy on {host}:{port}[/bold green]")
    console.print(f"  🤖 Gateway: [blue]{settings.gateway_url}[/blue]")
    console.print(f"  🧠 Model: [blue]{settings.model}[/blue]")

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
