"""Custom exception hierarchy for pymedtrip."""

from __future__ import annotations


class MedTripError(Exception):
    """Base exception for all pymedtrip errors."""


class MedTripConfigError(MedTripError):
    """Invalid or missing configuration."""


class MedTripNotInitializedError(MedTripError):
    """Client used outside of its ``async with`` block."""


class MedTripTransportError(MedTripError):
    """HTTP-level failure (network, timeout, invalid JSON)."""

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


class MedTripApiError(MedTripError):
    """Backend returned an error document (application-level error)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        endpoint: str = "",
        status_code: int | None = None,
    ) -> None:
        self.code = code
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(message)


class MedTripAuthenticationError(MedTripApiError):
    """Access token missing, expired or rejected by row-level security.

    Raised for HTTP 401/403 responses and for PostgREST JWT error codes
    (e.g. ``PGRST301``).
    """
