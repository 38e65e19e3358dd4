"""Shared CLI options for FlowPulse commands."""

from __future__ import annotations

import typer

from flowpulse import constants

# --- Gateway Options ---
GATEWAY_URL = typer.Option(
    constants.DEFAULT_GATEWAY_URL,
    "--gateway-url",
    envvar="AI_GATEWAY_URL",
    help="Base URL of the OpenAI-compatible AI gateway.",
    rich_help_panel="Gateway Configuration",
)
GATEWAY_API_KEY = typer.Option(
    None,
    "--gateway-api-key",
    envvar="AI_GATEWAY_API_KEY",
    help="Credential for the AI gateway. Kept server-side, never sent to clients.",
    rich_help_panel="Gateway Configuration",
)
MODEL = typer.Option(
    constants.DEFAULT_MODEL,
    "--model",
    help="Model requested from the gateway.",
    rich_help_panel="Gateway Configuration",
)

# --- Proxy Client Options ---
BASE_URL = typer.Option(
    constants.DEFAULT_BASE_URL,
    "--base-url",
    envvar="FLOWPULSE_URL",
    help="Base URL of the FlowPulse proxy.",
    rich_help_panel="Client Configuration",
)
PUBLIC_API_KEY = typer.Option(
    None,
    "--public-api-key",
    envvar="FLOWPULSE_PUBLIC_KEY",
    help="Public API key, used when no access token is available.",
    rich_help_panel="Client Configuration",
)
ACCESS_TOKEN = typer.Option(
    None,
    "--access-token",
    envvar="FLOWPULSE_ACCESS_TOKEN",
    help="Session access token attached as the bearer token.",
    rich_help_panel="Client Configuration",
)
READ_TIMEOUT = typer.Option(
    constants.DEFAULT_READ_TIMEOUT,
    "--read-timeout",
    help="Seconds to wait for the next chunk before giving up.",
    rich_help_panel="Client Configuration",
)

# --- Server Options ---
SERVER_HOST = typer.Option(
    constants.DEFAULT_PROXY_HOST,
    "--host",
    help="Host to bind to.",
    rich_help_panel="Server Configuration",
)
SERVER_PORT = typer.Option(
    constants.DEFAULT_PROXY_PORT,
    "--port",
    help="Port to bind to.",
    rich_help_panel="Server Configuration",
)

# --- General Options ---
LOG_LEVEL = typer.Option(
    "INFO",
    "--log-level",
    help="Set the log level (e.g., DEBUG, INFO, WARNING).",
    rich_help_panel="General Options",
)
QUIET = typer.Option(
    False,  # noqa: FBT003
    "--quiet",
    "-q",
    help="Only print the assembled answer.",
    rich_help_panel="General Options",
)
CLIPBOARD = typer.Option(
    False,  # noqa: FBT003
    "--clipboard/--no-clipboard",
    help="Copy the assembled answer to the clipboard.",
    rich_help_panel="General Options",
)


def _conf_callback(ctx: typer.Context, param: typer.CallbackParam, value: str | None) -> str | None:  # noqa: ARG001
    from flowpulse.cli import set_config_defaults  # noqa: PLC0415

    set_config_defaults(ctx, value)
    return value


CONFIG_FILE = typer.Option(
    None,
    "--config-file",
    help="Path to a custom config file.",
    rich_help_panel="General Options",
    callback=_conf_callback,
    is_eager=True,
)
PRINT_ARGS = typer.Option(
    False,  # noqa: FBT003
    "--print-args",
    help="Print the command line arguments, including variables taken from the configuration file.",
    rich_help_panel="General Options",
    is_eager=True,
)
