"""
Blob storage facade and backends.
"""

from blobkit.storage.backend import BlobBackend
from blobkit.storage.errors import (
    NotFoundError,
    OperationCancelledError,
    SizeLimitError,
    StorageError,
    StorageIOError,
    StoragePermissionError,
    TransportError,
)
from blobkit.storage.facade import BlobListing, BlobStoreFacade, build_backend, get_facade
from blobkit.storage.memory import InMemoryBlobBackend
from blobkit.storage.paths import BlobNames
from blobkit.storage.retry import call_with_retry, transport_retry

__all__ = [
    "BlobBackend",
    "BlobListing",
    "BlobNames",
    "BlobStoreFacade",
    "InMemoryBlobBackend",
    "NotFoundError",
    "OperationCancelledError",
    "SizeLimitError",
    "StorageError",
    "StorageIOError",
    "StoragePermissionError",
    "TransportError",
    "build_backend",
    "call_with_retry",
    "get_facade",
    "transport_retry",
]
