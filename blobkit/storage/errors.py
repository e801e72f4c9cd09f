"""
Typed errors for storage operations.

Every backend failure surfaces as one of these. Only a TransportError
with retryable set is eligible for retry.
"""


class StorageError(Exception):
    """Base exception for all storage errors."""

    retryable = False


class NotFoundError(StorageError):
    """Raised when a referenced container or blob does not exist."""

    def __init__(self, container: str, blob_name: str | None = None):
        self.container = container
        self.blob_name = blob_name
        if blob_name is None:
            super().__init__(f"Container not found: {container}")
        else:
            super().__init__(f"Blob not found: {container}/{blob_name}")


class StoragePermissionError(StorageError):
    """Raised on access-level or credential failures."""


class TransportError(StorageError):
    """
    Raised on network or backend failures.

    Most are transient and worth another attempt. Requests the service
    rejected outright, and uploads whose source cannot be replayed, are
    raised with ``retryable=False``.
    """

    def __init__(self, message: str = "", retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class StorageIOError(StorageError):
    """Raised when a local source or sink fails to read or write."""


class SizeLimitError(StorageError):
    """Raised when an entry or blob exceeds the backend's limits."""

    def __init__(
        self,
        blob_name: str,
        size: int | None = None,
        limit: int | None = None,
        what: str = "entry",
    ):
        self.blob_name = blob_name
        self.size = size
        self.limit = limit
        if size is None or limit is None:
            message = f"{what.capitalize()} for {blob_name} exceeds the backend limit"
        else:
            message = f"{what.capitalize()} for {blob_name} is {size} bytes, limit is {limit}"
        super().__init__(message)


class OperationCancelledError(StorageError):
    """Raised when a caller cancels an in-flight transfer or listing."""
