"""Default configuration settings for the FlowPulse pipeline."""

from __future__ import annotations

# --- Upstream AI gateway ---
DEFAULT_GATEWAY_URL = "https://ai.gateway.lovable.dev/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_GATEWAY_TIMEOUT = 120.0  # seconds, upstream request as a whole

# --- Proxy server ---
DEFAULT_PROXY_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_PROXY_PORT = 8000
FUNCTIONS_PREFIX = "/functions/v1"

# --- Stream consumer ---
DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_FUNCTION = "financial-chat"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0  # max silence between two body reads

# --- User-facing error messages ---
RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
PAYMENT_REQUIRED_MESSAGE = "AI credits depleted. Please contact support."
NOT_CONFIGURED_MESSAGE = "AI service not configured. Please contact support."
INVALID_REQUEST_MESSAGE = "Invalid request format"
