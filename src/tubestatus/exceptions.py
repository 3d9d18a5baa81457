"""Custom exception hierarchy for tubestatus."""

from __future__ import annotations


class TubeStatusError(Exception):
    """Base exception for all tubestatus errors."""


class TubeConfigError(TubeStatusError):
    """Invalid or missing configuration."""


class TubeFetchError(TubeStatusError):
    """Status feed failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class TubeParseError(TubeStatusError):
    """A single entity's document has an unrecognised shape."""

    def __init__(self, message: str, *, entity_id: str = "") -> None:
        self.entity_id = entity_id
        super().__init__(message)


class TubeStoreError(TubeStatusError):
    """Base for history store failures."""


class TubeStoreInitError(TubeStoreError):
    """The store could not be opened or its tables created.

    This is the only failure that is fatal for the process: without a
    store there is nothing to poll into and nothing to serve.
    """


class TubeConnectionError(TubeStoreError):
    """No pooled connection could be acquired."""


class TubeTransactionError(TubeStoreError):
    """A write transaction failed and was rolled back in full."""


class TubeQueryError(TubeStoreError):
    """A read failed or returned rows that cannot be decoded."""


class TubeValidationError(TubeStatusError):
    """Query input rejected before touching storage (bad window or timestamp)."""


class TubeDetailsLoadingError(TubeStatusError):
    """Station details are still loading; the caller should retry later."""
