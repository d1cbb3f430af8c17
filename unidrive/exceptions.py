"""
Domain exceptions for virtual filesystem operations.

Every error the services raise derives from DriveError. The HTTP layer
maps each subclass to a status code and a safe client message; storage
adapter failures live in unidrive.storage.exceptions.
"""


class DriveError(Exception):
    """Base exception for drive operations."""

    status_code = 500
    title = "Error"


class ValidationError(DriveError):
    """Raised when input is malformed (bad name, bad range, bad ids)."""

    status_code = 400
    title = "Bad Request"


class NotFoundError(DriveError):
    """Raised when an id or handle does not resolve to a live item."""

    status_code = 404
    title = "Not Found"

    def __init__(self, what: str = "Item"):
        self.what = what
        super().__init__(f"{what} not found")


class ConflictError(DriveError):
    """Raised when a name collides with a live sibling and nothing resolves it."""

    status_code = 409
    title = "Conflict"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An item named '{name}' already exists in this folder")


class QuotaExceededError(DriveError):
    """Raised when an upload would push usage past the owner's quota."""

    status_code = 413
    title = "Quota Exceeded"

    def __init__(self, used: int, incoming: int, max_bytes: int):
        self.used = used
        self.incoming = incoming
        self.max_bytes = max_bytes
        super().__init__(
            f"Storage quota exceeded: {used} used + {incoming} incoming > {max_bytes} allowed"
        )


class LockError(DriveError):
    """Raised when a folder password is required, wrong, or not set."""

    status_code = 403
    title = "Locked"


class CycleError(DriveError):
    """Raised when a folder would be moved into itself or its own subtree."""

    status_code = 400
    title = "Bad Request"

    def __init__(self, folder_id: int, target_id: int):
        self.folder_id = folder_id
        self.target_id = target_id
        super().__init__("A folder cannot be moved into itself or one of its subfolders")
