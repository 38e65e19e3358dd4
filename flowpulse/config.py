"""Pydantic models for pipeline configuration and config file loading."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, field_validator
from rich.console import Console

from flowpulse import constants

console = Console()

# --- Config File Loading ---

CONFIG_PATH = Path.home() / ".config" / "flowpulse" / "config.toml"
CONFIG_PATH_2 = Path("flowpulse-config.toml")


def _replace_dashed_keys(cfg: dict[str, Any]) -> dict[str, Any]:
    """Replace dashed keys with underscores in the config options."""
    return {k.replace("-", "_"): v for k, v in cfg.items()}


def load_config(config_path_str: str | None = None) -> dict[str, Any]:
    """Load the TOML configuration file and process it for nested structures."""
    if config_path_str:
        config_path = Path(config_path_str)
    elif CONFIG_PATH.exists():
        config_path = CONFIG_PATH
    elif CONFIG_PATH_2.exists():
        config_path = CONFIG_PATH_2
    else:
        return {}

    if config_path.exists():
        with config_path.open("rb") as f:
            cfg = tomllib.load(f)
            return {
                k: _replace_dashed_keys(v) if isinstance(v, dict) else v
                for k, v in cfg.items()
            }

    # Report error only if an explicit path was given
    if config_path_str:
        console.print(
            f"[bold red]Config file not found at {config_path_str}[/bold red]",
        )
    return {}


# --- Pydantic Models for Configuration ---


def _strip_trailing_slash(v: str) -> str:
    return v.rstrip("/")


class ProxySettings(BaseModel):
    """Configuration for the server-side proxy function."""

    gateway_url: str = constants.DEFAULT_GATEWAY_URL
    gateway_api_key: str | None = None
    model: str = constants.DEFAULT_MODEL
    request_timeout: float = constants.DEFAULT_GATEWAY_TIMEOUT

    @field_validator("gateway_url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return _strip_trailing_slash(v)


class ConsumerSettings(BaseModel):
    """Configuration for the client-side stream consumer."""

    base_url: str = constants.DEFAULT_BASE_URL
    public_api_key: str | None = None
    function_name: str = constants.DEFAULT_FUNCTION
    connect_timeout: float = constants.DEFAULT_CONNECT_TIMEOUT
    read_timeout: float | None = constants.DEFAULT_READ_TIMEOUT

    @field_validator("base_url")
    @classmethod
    def _normalize_url(cls, v: str) -> str:
        return _strip_trailing_slash(v)

    def function_url(self, function_name: str | None = None) -> str:
        """Return the URL of a proxy function."""
        name = function_name or self.function_name
        return f"{self.base_url}{constants.FUNCTIONS_PREFIX}/{name}"
