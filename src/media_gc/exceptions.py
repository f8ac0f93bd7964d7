"""Exception hierarchy for the media garbage collector.

All project-specific exceptions inherit from MediaGCError so callers can
catch the whole family in one place:

    from media_gc.exceptions import MediaGCError, StoreError

    try:
        await store.find("images")
    except StoreError as e:
        logger.error(f"Query failed: {e}")
"""


class MediaGCError(Exception):
    """Base exception for all media-gc errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class ConfigurationError(MediaGCError):
    """Error in cleanup configuration."""

    pass


class StoreError(MediaGCError):
    """Base class for document store errors."""

    pass


class UnknownCollectionError(StoreError):
    """Collection slug is not registered with the store."""

    pass


class DocumentNotFoundError(StoreError):
    """No document with the requested id exists in the collection."""

    pass


class InvalidQueryError(StoreError):
    """Where clause references an unknown field or operator."""

    pass


class CleanupAlreadyRunningError(MediaGCError):
    """Another media cleanup run holds the lease."""

    pass
