class ShortenerError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShortenerError):
    status_code = 400


class ConflictError(ShortenerError):
    status_code = 400


class NotFoundError(ShortenerError):
    status_code = 404


class AuthError(ShortenerError):
    status_code = 401


class StorageError(ShortenerError):
    status_code = 500


class ExhaustedError(StorageError):
    """Raised when no free short link could be allocated."""
