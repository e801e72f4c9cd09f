"""
InMemoryBlobBackend: dict-based blob storage for development and testing.
"""

import itertools
import threading
import uuid
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime

import structlog

from blobkit.models import AccessLevel, BlobKind, BlobMetadata, DirectoryMarker, ListPage, utc_now
from blobkit.storage.errors import NotFoundError, SizeLimitError, StoragePermissionError
from blobkit.storage.paths import DELIMITER, BlobNames

logger = structlog.get_logger(__name__)

# Same per-append and per-blob limits as the Azure append blob defaults
DEFAULT_MAX_APPEND_BLOCK_BYTES = 4 * 1024 * 1024
DEFAULT_MAX_APPEND_BLOB_BYTES = 50_000 * DEFAULT_MAX_APPEND_BLOCK_BYTES
MAX_PAGE_SIZE = 5000


@dataclass
class _StoredBlob:
    kind: BlobKind
    # Position in the container listing; cursors resume after it
    seq: int = 0
    data: bytearray = field(default_factory=bytearray)
    last_modified: datetime = field(default_factory=utc_now)
    etag: str = field(default_factory=lambda: f'"{uuid.uuid4().hex}"')

    def touch(self) -> None:
        self.last_modified = utc_now()
        self.etag = f'"{uuid.uuid4().hex}"'


@dataclass
class _StoredContainer:
    access: AccessLevel = AccessLevel.PRIVATE
    # Insertion order is the backend-native listing order
    blobs: dict[str, _StoredBlob] = field(default_factory=dict)


class InMemoryBlobBackend:
    """
    In-memory blob backend for development and testing.

    Listings come back in insertion order, not lexical order. A continuation
    cursor marks the last item returned, so blobs added or deleted between
    pages neither shift nor repeat the rest. All state changes happen under
    a single lock so concurrent callers see each operation as atomic.
    """

    def __init__(
        self,
        admin: bool = True,
        max_page_size: int = MAX_PAGE_SIZE,
        max_append_block_bytes: int = DEFAULT_MAX_APPEND_BLOCK_BYTES,
        max_append_blob_bytes: int = DEFAULT_MAX_APPEND_BLOB_BYTES,
        chunk_size: int = 64 * 1024,
    ):
        if max_page_size < 1:
            raise ValueError("max_page_size must be >= 1")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.admin = admin
        self.max_page_size = max_page_size
        self.max_append_block_bytes = max_append_block_bytes
        self.max_append_blob_bytes = max_append_blob_bytes
        self.chunk_size = chunk_size
        self._containers: dict[str, _StoredContainer] = {}
        self._lock = threading.Lock()
        self._sequence = itertools.count(1)

    def _container(self, container: str) -> _StoredContainer:
        stored = self._containers.get(container)
        if stored is None:
            raise NotFoundError(container)
        return stored

    def _blob(self, container: str, name: str) -> _StoredBlob:
        stored = self._container(container).blobs.get(name)
        if stored is None:
            raise NotFoundError(container, name)
        return stored

    def _metadata(self, container: str, name: str, blob: _StoredBlob) -> BlobMetadata:
        return BlobMetadata(
            name=name,
            size_bytes=len(blob.data),
            last_modified=blob.last_modified,
            kind=blob.kind,
            url=f"memory://{container}/{name}",
            etag=blob.etag,
        )

    def create_container_if_absent(self, container: str) -> bool:
        with self._lock:
            if container in self._containers:
                return False
            self._containers[container] = _StoredContainer()
            return True

    def get_access(self, container: str) -> AccessLevel:
        with self._lock:
            return self._container(container).access

    def set_access(self, container: str, level: AccessLevel) -> None:
        if not self.admin:
            raise StoragePermissionError(f"Not authorized to change access on {container}")
        with self._lock:
            self._container(container).access = level

    def put_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        BlobNames.validate(name)
        with self._lock:
            stored = self._container(container)
            existing = stored.blobs.get(name)
            seq = existing.seq if existing is not None else next(self._sequence)
            blob = _StoredBlob(kind=BlobKind.BLOCK, seq=seq, data=bytearray(data))
            stored.blobs[name] = blob
            return self._metadata(container, name, blob)

    def list_segmented(
        self,
        container: str,
        prefix: str,
        delimiter: str | None,
        cursor: str | None,
        page_size: int,
    ) -> ListPage:
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        if delimiter not in (None, DELIMITER):
            raise ValueError(f"Unsupported delimiter: {delimiter!r}")

        after = int(cursor) if cursor else 0
        limit = min(page_size, self.max_page_size)

        with self._lock:
            stored = self._container(container)
            entries: list[tuple[int, BlobMetadata | DirectoryMarker]] = []
            seen_dirs: set[str] = set()
            for name, blob in stored.blobs.items():
                if not name.startswith(prefix):
                    continue
                directory = BlobNames.collapse(name, prefix) if delimiter else None
                if directory is not None:
                    if directory in seen_dirs:
                        continue
                    seen_dirs.add(directory)
                if blob.seq <= after:
                    continue
                if directory is None:
                    item = self._metadata(container, name, blob)
                else:
                    item = DirectoryMarker(prefix=directory)
                entries.append((blob.seq, item))
                if len(entries) > limit:
                    break


        page = entries[:limit]
        continuation = str(page[-1][0]) if len(entries) > limit else None
        return ListPage(items=tuple(item for _, item in page), continuation=continuation)

    def get_stream(self, container: str, name: str) -> Iterator[bytes]:
        with self._lock:
            data = bytes(self._blob(container, name).data)
        return self._chunks(data)

    def _chunks(self, data: bytes) -> Iterator[bytes]:
        for offset in range(0, len(data), self.chunk_size):
            yield data[offset : offset + self.chunk_size]

    def create_append_blob_if_absent(self, container: str, name: str) -> bool:
        BlobNames.validate(name)
        with self._lock:
            stored = self._container(container)
            if name in stored.blobs:
                return False
            stored.blobs[name] = _StoredBlob(kind=BlobKind.APPEND, seq=next(self._sequence))
            return True

    def append_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        if len(data) > self.max_append_block_bytes:
            raise SizeLimitError(name, len(data), self.max_append_block_bytes)

        with self._lock:
            blob = self._blob(container, name)
            if blob.kind is not BlobKind.APPEND:
                raise NotFoundError(container, name)
            total = len(blob.data) + len(data)
            if total > self.max_append_blob_bytes:
                raise SizeLimitError(name, total, self.max_append_blob_bytes, what="blob")
            blob.data.extend(data)
            blob.touch()
            return self._metadata(container, name, blob)

    def delete_blob(self, container: str, name: str) -> None:
        with self._lock:
            stored = self._container(container)
            if stored.blobs.pop(name, None) is None:
                raise NotFoundError(container, name)
        logger.debug("Deleted in-memory blob", container=container, blob=name)

    def blob_names(self, container: str) -> list[str]:
        """Names of all blobs in a container, in native order."""
        with self._lock:
            return list(self._container(container).blobs)

    def container_names(self) -> list[str]:
        with self._lock:
            return list(self._containers)
