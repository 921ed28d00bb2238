"""
Error taxonomy for doccanvas.

Every failure raised by the provider and asset layers derives from
:class:`DocCanvasError`, so the GUI glue layer can catch one type and
still tell the categories apart:

    - :class:`ConfigError`    – unknown provider or missing sub-config
    - :class:`TransportError` – connection failure or timeout
    - :class:`APIError`       – non-2xx status or an ``error.message`` body
    - :class:`ParseError`     – malformed or unexpected response payload
    - :class:`SecurityError`  – absolute path or traversal in a reference
    - :class:`AssetIOError`   – directory create / file read / file write
"""

from __future__ import annotations

from typing import Optional


class DocCanvasError(Exception):
    """Base class for all doccanvas errors."""


class ConfigError(DocCanvasError):
    """The active configuration cannot be dispatched to a provider."""


class TransportError(DocCanvasError):
    """The HTTP round trip failed before a response was received."""


class APIError(DocCanvasError):
    """A provider rejected the request.

    Parameters:
        provider: Provider name used in the message (e.g. ``"OpenAI"``).
        message: Raw response body or the provider's ``error.message``.
        status_code: HTTP status, or ``None`` when the error was reported
            inside an otherwise successful response body.
    """

    def __init__(self, provider: str, message: str, status_code: Optional[int] = None):
        self.provider = provider
        self.body = message
        self.status_code = status_code
        if status_code is None:
            text = f"{provider} API error: {message}"
        else:
            text = f"{provider} API returned error status {status_code}: {message}"
        super().__init__(text)


class ParseError(DocCanvasError):
    """A response or data URL did not have the expected shape."""


class SecurityError(DocCanvasError):
    """An asset reference tried to leave the download root."""


class AssetIOError(DocCanvasError, OSError):
    """Filesystem failure while storing or reading an asset."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0] if self.args else ""
