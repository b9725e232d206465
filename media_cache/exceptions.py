"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MediaCacheError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MediaCacheError):
    """Raised for issues related to configuration loading or validation."""


class StorageUnavailableError(MediaCacheError):
    """Raised when the on-disk cache regions cannot be opened or written."""


class FetchError(MediaCacheError):
    """Raised when a remote asset body cannot be downloaded."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(reason)


class IssuerError(MediaCacheError):
    """Raised when the object store refuses to sign an access URL."""


class ResolutionError(MediaCacheError):
    """
    Raised when no playable URL can be produced at all, neither from the cache
    nor from the issuer.
    """


class HandleRevokedError(MediaCacheError):
    """Raised when reading from a local handle that has already been revoked."""


class RecordValidationError(MediaCacheError):
    """Raised when a persisted metadata record fails to parse or validate."""
