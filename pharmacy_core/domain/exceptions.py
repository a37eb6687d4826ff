"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any network call"""

    pass


class CatalogLookupError(DomainException):
    """Product could not be resolved when first added to the cart"""

    pass


class InvalidStateError(DomainException):
    """Order transition attempted from a disallowed state"""

    pass


class AccessDeniedError(DomainException):
    """Caller is not logged in, or lacks the admin role"""

    pass


class CartStorageError(DomainException):
    """Durable cart store failed to read or write"""

    pass


class StaleCacheError(DomainException):
    """Cache entry is missing or past its TTL; callers refetch"""

    pass


class MalformedPayloadError(DomainException):
    """Remote service answered with an unexpected shape"""

    pass


class RemoteError(DomainException):
    """Remote pharmacy API returned an error or is unavailable"""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def is_auth_failure(self) -> bool:
        """401/403: the caller must tear the session down, never retry"""
        return self.status in (401, 403)

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.status}: {self.message}"
