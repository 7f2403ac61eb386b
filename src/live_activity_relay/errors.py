"""Exception hierarchy for the live activity relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay errors."""


class ValidationError(RelayError):
    """Raised when a dispatch request is malformed (e.g. no targets)."""


class UnsupportedEventKind(ValidationError):
    """Raised when an event tag is not one of start, update or end."""

    def __init__(self, event: str) -> None:
        super().__init__(f"Unsupported live activity event: {event!r}")
        self.event = event


class ContentNotFound(RelayError):
    """Raised when the store has no content row for the requested id."""

    def __init__(self, content_id: int) -> None:
        super().__init__(f"No live activity content with id {content_id}")
        self.content_id = content_id


class ConfigError(RelayError):
    """Raised when required transport configuration is missing."""


class StoreError(RelayError):
    """Raised when the external content store cannot be read or written."""


class GatewayError(RelayError):
    """Raised when the push gateway rejects a request or cannot be reached.

    Attributes:
        status: HTTP status code, or None for transport failures.
        detail: Response text or transport error description.
    """

    def __init__(self, detail: str, *, status: int | None = None) -> None:
        message = f"HTTP {status}: {detail}" if status is not None else detail
        super().__init__(message)
        self.status = status
        self.detail = detail
