# SPDX-License-Identifier: MIT
"""Exception hierarchy for the storage engine.

Every failure for a given file is reported as exactly one of these, so
callers can catch :class:`StorageEngineError` to handle any upload problem.
"""

from __future__ import annotations


class StorageEngineError(Exception):
    """Base class for all safestore errors."""


class ConfigurationError(StorageEngineError):
    """An option was given a shape it does not accept (raised at construction)."""


class ResolverError(StorageEngineError):
    """A user-supplied option resolver failed."""

    def __init__(self, option: str, message: str) -> None:
        super().__init__(f"Failed to resolve {option!r}: {message}")
        self.option = option


class SizeLimitError(StorageEngineError):
    """An SVG candidate grew past the buffering limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"SVG file size exceeds the maximum allowed limit of {limit} bytes")
        self.limit = limit


class SanitizationError(StorageEngineError):
    """Sanitized content no longer looks like an SVG document."""


class StreamError(StorageEngineError):
    """Reading the upload stream failed."""


class StoreError(StorageEngineError):
    """The object store rejected an operation."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code
