"""Error taxonomy for profile backup operations.

Routes map InvalidInputError to HTTP 400 and every other ProfileServiceError
to HTTP 500, each with an ``{"error": message}`` body.
"""


class ProfileServiceError(Exception):
    """Base for errors raised by the profile store and profile service."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(ProfileServiceError):
    """Source directory, backup directory or profile record is absent."""


class ConflictError(ProfileServiceError):
    """A generated profile id collided with an existing record."""


class InvalidInputError(ProfileServiceError):
    """Malformed request input or missing configuration."""


class IOFailureError(ProfileServiceError):
    """Copying or deleting a directory failed."""


class StoreFailureError(ProfileServiceError):
    """The database rejected a read or write."""
