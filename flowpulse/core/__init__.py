"""Shared building blocks: SSE framing, upstream forwarding, console helpers."""
