"""Exceptions raised by deltaweave."""

from __future__ import annotations

import json
from typing import Any


class DeltaweaveError(Exception):
    """Base for all deltaweave errors."""


class TransportError(DeltaweaveError):
    """Reading the underlying byte stream failed.

    Fatal for the reader that raised it.  The underlying I/O exception is
    chained as ``__cause__``.
    """


class DecodeError(DeltaweaveError):
    """A single stream record could not be decoded.

    Raised by :func:`deltaweave.events.parse_event`.  The decoder catches
    it and skips the record, so callers of a reader never see it.
    """

    def __init__(self, message: str, payload: str = ""):
        super().__init__(message)
        self.payload = payload


class APIError(DeltaweaveError):
    """An error response returned by the provider."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Any = None,
        type: str | None = None,
    ):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.type = type
        detail = f"API error (status {status_code}): {message}"
        if code is not None:
            detail += f" (code: {code})"
        super().__init__(detail)


def parse_api_error(status_code: int, body: bytes | str) -> APIError:
    """Build an :class:`APIError` from an HTTP error body.

    Bodies shaped like ``{"error": {"message": ..., "code": ...}}`` yield
    their message and code; anything else is kept verbatim as the message.
    """
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return APIError(status_code, text)
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if not isinstance(error, dict):
        return APIError(status_code, text)
    return APIError(
        status_code,
        error.get("message") or "",
        code=error.get("code"),
        type=error.get("type"),
    )
