"""Custom exceptions raised by the AgbCloud client."""

from __future__ import annotations

from typing import Any, Optional, Sequence

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class AgbCloudError(Exception):
    """Base exception for all AgbCloud specific failures."""


class AuthenticationError(AgbCloudError):
    """Raised when tokens are missing, expired, or rejected by the server."""


class APIError(AgbCloudError):
    """Raised when the AgbCloud API returns a non-successful HTTP response."""

    def __init__(self, message: str, status_code: int, response: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response

    @property
    def is_transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUS_CODES

    def __str__(self) -> str:  # pragma: no cover - repr helper
        return f"{self.status_code}: {self.message}"


class RequestRejectedError(AgbCloudError):
    """Raised when the response envelope reports ``success: false``."""

    def __init__(self, message: str, code: str | None = None, request_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.request_id = request_id

    def __str__(self) -> str:
        detail = f"{self.message}: {self.code or 'unknown error'}"
        if self.request_id:
            detail += f" (request ID: {self.request_id})"
        return detail


class NoPortAvailableError(AgbCloudError):
    """Raised when neither the default callback port nor any alternative is free."""

    def __init__(self, default_port: str, attempted: Sequence[str]):
        self.default_port = default_port
        self.attempted = list(attempted)
        if len(self.attempted) <= 1:
            message = (
                f"no available port found: default port {default_port} is occupied "
                "and no alternative ports provided"
            )
        else:
            message = (
                f"no available port found: ports [{', '.join(self.attempted)}] are all occupied. "
                "Please free up one of these ports and try again"
            )
        super().__init__(message)


class TransientError(AgbCloudError):
    """A status check failed in a way that should not abort a long-running wait."""


class ImageNotFoundError(AgbCloudError):
    """Raised when the server has no image with the requested ID."""

    def __init__(self, image_id: str):
        super().__init__(f"image not found: {image_id}")
        self.image_id = image_id
