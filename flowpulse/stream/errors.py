"""Exceptions raised while issuing or reading a chat stream."""

from __future__ import annotations

from http import HTTPStatus

from flowpulse import constants


class StreamError(Exception):
    """Base class for errors reported through ``on_error``."""

    @property
    def user_message(self) -> str:
        """Human-readable message for the calling UI."""
        return str(self)


class RateLimited(StreamError):
    """The gateway answered 429."""

    status_code = HTTPStatus.TOO_MANY_REQUESTS

    def __init__(self, message: str = constants.RATE_LIMIT_MESSAGE) -> None:
        super().__init__(message)


class PaymentRequired(StreamError):
    """The gateway answered 402, the workspace is out of AI credits."""

    status_code = HTTPStatus.PAYMENT_REQUIRED

    def __init__(self, message: str = constants.PAYMENT_REQUIRED_MESSAGE) -> None:
        super().__init__(message)


class UpstreamError(StreamError):
    """Any other non-2xx status, or a response that is not a chat completion."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to start stream: {status_code} {body}".rstrip())


class TransportError(StreamError):
    """Network failure, timeout, missing body or a failing reader."""


class ParseError(StreamError):
    """A frame could not be decoded as JSON.

    Never reaches ``on_error``: frames are re-buffered during streaming and a
    failing tail is dropped during the final flush.
    """

    def __init__(self, payload: str) -> None:
        self.payload = payload
        super().__init__(f"Could not parse frame: {payload[:80]!r}")


class StreamBusyError(RuntimeError):
    """A second stream was started on a consumer that is still streaming."""


def error_for_status(status_code: int, body: str) -> StreamError:
    """Map a non-2xx proxy status to the matching exception."""
    if status_code == HTTPStatus.TOO_MANY_REQUESTS:
        return RateLimited()
    if status_code == HTTPStatus.PAYMENT_REQUIRED:
        return PaymentRequired()
    return UpstreamError(status_code, body)
