"""CLI commands for the FlowPulse tools."""

from . import chat, proxy_server

__all__ = ["chat", "proxy_server"]
