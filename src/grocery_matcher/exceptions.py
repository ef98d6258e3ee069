"""Exceptions for the grocery matcher package."""

from typing import Optional


class ConfigurationError(Exception):
    """Raised when a requested catalog source is not registered or a setting is invalid."""
    pass


class CatalogError(Exception):
    """Base class for failures talking to an upstream catalog."""

    def __init__(self, message: str, source_id: Optional[str] = None):
        super().__init__(message)
        self.source_id = source_id

    def __str__(self) -> str:
        message = super().__str__()
        if self.source_id:
            return f"[{self.source_id}] {message}"
        return message


class NetworkError(CatalogError):
    """Raised when a request keeps failing (transport error, 5xx, bad body) after all retries."""
    pass


class RequestTimeoutError(CatalogError):
    """Raised when a single request exceeds its timeout. Never retried internally."""
    pass


class RateLimitedError(CatalogError):
    """Raised when the upstream keeps answering HTTP 429 after all retries."""

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, source_id=source_id)
        self.retry_after = retry_after
