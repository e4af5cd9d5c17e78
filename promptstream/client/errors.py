"""
Error types for the prompt streaming client.

Fatal errors (configuration, transport) abort the invocation. Malformed
stream events are raised only inside the decoder and never escape it.
"""

from typing import Optional


class PromptStreamError(Exception):
    """Base class for all client errors."""


class ConfigurationError(PromptStreamError):
    """Raised when the configuration is incomplete, e.g. no endpoint was given."""


class TransportError(PromptStreamError):
    """Raised on connection failure, timeout or a non-success HTTP status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedEventError(PromptStreamError):
    """Raised when a single stream line cannot be turned into a text delta."""
