"""Allow running the CLI with ``python -m flowpulse``."""

from flowpulse.cli import app

app()
