"""
Storage-specific exceptions.

Adapters wrap upstream failures (HTTP errors, botocore errors, OS errors)
in BackendError so callers can decide on retries without knowing which
backend produced them.
"""
from unidrive.exceptions import DriveError


class BackendError(DriveError):
    """Raised when a storage backend call fails."""

    status_code = 502
    title = "Bad Gateway"

    def __init__(self, message: str, backend: str | None = None, locator: str | None = None):
        self.backend = backend
        self.locator = locator
        super().__init__(message)


class ObjectNotFoundError(BackendError):
    """Raised when the backend has no object at the requested locator."""

    def __init__(self, locator: str, backend: str | None = None):
        super().__init__(f"Object not found: {locator}", backend=backend, locator=locator)


class StreamTruncatedError(BackendError):
    """Raised when a backend stream ends before the declared length."""

    def __init__(self, expected: int, received: int, locator: str | None = None):
        self.expected = expected
        self.received = received
        super().__init__(
            f"Backend stream ended after {received} of {expected} bytes",
            locator=locator,
        )
