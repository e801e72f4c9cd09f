"""
BlobStoreFacade: a narrow, backend-agnostic API for container and blob lifecycle.
"""

import os
import tempfile
import threading
from collections.abc import Iterator
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import BinaryIO

import structlog

from blobkit.config import ConfigurationError, SettingsProvider, get_settings
from blobkit.models import (
    AccessLevel,
    BlobKind,
    BlobMetadata,
    ContainerHandle,
    ListItem,
    ListPage,
)
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
from blobkit.storage.paths import DELIMITER, BlobNames

logger = structlog.get_logger(__name__)

ByteSource = bytes | bytearray | memoryview | str | os.PathLike | BinaryIO
ByteSink = str | os.PathLike | BinaryIO


def _container_name(container: ContainerHandle | str) -> str:
    if isinstance(container, ContainerHandle):
        return container.name
    return container


def _release(stream: Iterator[bytes]) -> None:
    close = getattr(stream, "close", None)
    if close is not None:
        close()


def _is_stream(source: ByteSource) -> bool:
    return not isinstance(source, (bytes, bytearray, memoryview, str, os.PathLike))


def _seekable(stream: BinaryIO) -> bool:
    seekable = getattr(stream, "seekable", None)
    return bool(seekable is not None and seekable())


class BlobListing:
    """
    Lazy listing over a paged backend enumeration.

    Each iteration starts a fresh enumeration, so a listing can be iterated
    again with the same arguments. Pages are only requested as the caller
    consumes items; breaking out of the loop stops further requests.
    """

    def __init__(
        self,
        backend: BlobBackend,
        container: str,
        prefix: str = "",
        hierarchical: bool = False,
        page_size: int = 100,
        cancel: threading.Event | None = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        self.backend = backend
        self.container = container
        self.prefix = prefix
        self.hierarchical = hierarchical
        self.page_size = page_size
        self.cancel = cancel

    def pages(self) -> Iterator[ListPage]:
        """Yield raw backend pages until the continuation cursor runs out."""
        delimiter = DELIMITER if self.hierarchical else None
        cursor: str | None = None
        page_number = 0
        while True:
            if self.cancel is not None and self.cancel.is_set():
                raise OperationCancelledError(f"Listing of {self.container} cancelled")

            page = self.backend.list_segmented(
                self.container,
                self.prefix,
                delimiter,
                cursor,
                self.page_size,
            )
            page_number += 1
            logger.debug(
                "Fetched listing page",
                container=self.container,
                page=page_number,
                items=len(page.items),
            )
            yield page

            if page.is_last:
                return
            cursor = page.continuation

    def _has_children(self, name: str) -> bool:
        children = self.backend.list_segmented(
            self.container,
            BlobNames.as_directory(name),
            DELIMITER,
            None,
            1,
        )
        return bool(children.items)

    def __iter__(self) -> Iterator[ListItem]:
        for page in self.pages():
            for item in page.items:
                match item.kind:
                    case BlobKind.DIRECTORY:
                        yield item
                    case _:
                        # A leaf shadowed by a same-named directory is listed as the directory
                        if self.hierarchical and self._has_children(item.name):
                            continue
                        yield item


class BlobStoreFacade:
    """
    Container and blob operations over an injected backend.

    Every backend failure reaches the caller as a StorageError subclass.
    Nothing is retried here; see blobkit.storage.retry for caller-directed
    retry of transport failures.
    """

    def __init__(
        self,
        backend: BlobBackend,
        container: str,
        page_size: int = 100,
    ):
        self.backend = backend
        self.container = container
        self.page_size = page_size
        self._append_blobs: set[tuple[str, str]] = set()
        self._append_lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: SettingsProvider,
        backend: BlobBackend | None = None,
    ) -> "BlobStoreFacade":
        """
        Build a facade from any settings provider.

        Reads ``azure_storage_container`` (required) and ``list_page_size``
        (default 100). The backend is built from the same provider unless
        one is passed in.

        Raises:
            ConfigurationError: The container name is not configured
        """
        page_size = _optional_setting(settings, "list_page_size")
        return cls(
            backend=backend or build_backend(settings),
            container=settings.get_setting("azure_storage_container"),
            page_size=int(page_size) if page_size else 100,
        )


    def ensure_container(self, name: str | None = None) -> ContainerHandle:
        """
        Create the container if absent. Safe to call repeatedly.

        A new container is private. For an existing one the access level is
        read back; callers without the rights to read it get a handle whose
        access_level is None.
        """
        name = name or self.container
        created = self.backend.create_container_if_absent(name)
        level: AccessLevel | None = AccessLevel.PRIVATE
        if not created:
            try:
                level = self.backend.get_access(name)
            except StoragePermissionError as e:
                logger.warning("Container access level unreadable", container=name, error=str(e))
                level = None
        logger.info(
            "Container ready",
            container=name,
            created=created,
            access=level.value if level else None,
        )
        return ContainerHandle(name=name, access_level=level, created=created)

    def set_access_level(
        self,
        container: ContainerHandle | str,
        level: AccessLevel,
    ) -> ContainerHandle:
        """
        Overwrite the container-wide access level.

        Note: with PUBLIC_BLOB or PUBLIC_CONTAINER anyone can read the blobs,
        but modifying them still needs the account key or a SAS.
        """
        name = _container_name(container)
        self.backend.set_access(name, level)
        logger.info("Container access changed", container=name, access=level.value)
        return ContainerHandle(name=name, access_level=level)

    def upload_block(
        self,
        container: ContainerHandle | str,
        blob_name: str,
        source: ByteSource,
    ) -> BlobMetadata:
        """
        Create or overwrite a block blob from bytes, a stream or a file path.

        The source is read to completion before anything is sent, so a read
        failure leaves the blob untouched. If the backend call fails, a
        seekable stream is rewound to where it started so the upload can be
        retried. A stream that cannot be rewound turns a retryable failure
        into a non-retryable one.

        Raises:
            StorageIOError: The source could not be read
            TransportError: The backend call failed
        """
        name = _container_name(container)
        BlobNames.validate(blob_name)
        data, start = self._read_source(source)
        try:
            metadata = self.backend.put_block(name, blob_name, data)
        except StorageError as e:
            if _is_stream(source):
                self._rewind_source(source, start, e)
            raise
        logger.info(
            "Uploaded block blob",
            container=name,
            blob=blob_name,
            size_bytes=metadata.size_bytes,
        )
        return metadata

    def _read_source(self, source: ByteSource) -> tuple[bytes, int | None]:
        """Read a source fully, returning the data and the stream offset it started at."""
        if isinstance(source, (bytes, bytearray, memoryview)):
            return bytes(source), None
        try:
            if isinstance(source, (str, os.PathLike)):
                with open(source, "rb") as f:
                    return f.read(), None
            start = source.tell() if _seekable(source) else None
            data = source.read()
        except (OSError, ValueError) as e:
            raise StorageIOError(f"Failed to read upload source: {e}") from e
        if not isinstance(data, (bytes, bytearray)):
            raise StorageIOError("Upload source must be opened in binary mode")
        return bytes(data), start

    def _rewind_source(self, source: BinaryIO, start: int | None, error: StorageError) -> None:
        if start is None:
            if error.retryable:
                raise TransportError(
                    f"{error}; the upload source cannot be rewound for another attempt",
                    retryable=False,
                ) from error
            return
        try:
            source.seek(start)
        except (OSError, ValueError) as e:
            raise StorageIOError(f"Failed to rewind upload source: {e}") from error

    def list_blobs(
        self,
        container: ContainerHandle | str,
        prefix: str | None = None,
        hierarchical: bool = False,
        cancel: threading.Event | None = None,
    ) -> BlobListing:
        """
        List blobs lazily, hiding pagination.

        Args:
            container: Container to list
            prefix: Only names starting with this prefix
            hierarchical: Collapse names at the next '/' into DirectoryMarker
                items instead of listing every nested blob
            cancel: Optional event that stops the enumeration before the
                next page is requested

        Returns:
            An iterable that can be consumed more than once
        """
        return BlobListing(
            self.backend,
            _container_name(container),
            prefix=prefix or "",
            hierarchical=hierarchical,
            page_size=self.page_size,
            cancel=cancel,
        )

    def download_blob(
        self,
        container: ContainerHandle | str,
        blob_name: str,
        sink: ByteSink,
        cancel: threading.Event | None = None,
    ) -> int:
        """
        Stream a blob's full content into a writable stream or a file path.

        File destinations are written to a temporary sibling and renamed into
        place only after the last chunk, so a failed or cancelled download
        never leaves a partial file and never touches an existing one. Stream
        sinks are truncated back to where they started.

        Returns:
            Number of bytes written

        Raises:
            NotFoundError: The blob does not exist
            StorageIOError: The sink could not be written
            OperationCancelledError: ``cancel`` was set mid-stream
        """
        name = _container_name(container)
        stream = self.backend.get_stream(name, blob_name)
        try:
            if isinstance(sink, (str, os.PathLike)):
                written = self._download_to_path(stream, blob_name, Path(sink), cancel)
            else:
                written = self._download_to_stream(stream, blob_name, sink, cancel)
        finally:
            _release(stream)

        logger.info("Downloaded blob", container=name, blob=blob_name, size_bytes=written)
        return written

    def _copy_chunks(
        self,
        stream: Iterator[bytes],
        blob_name: str,
        sink: BinaryIO,
        cancel: threading.Event | None,
    ) -> int:
        written = 0
        for chunk in stream:
            if cancel is not None and cancel.is_set():
                raise OperationCancelledError(f"Download of {blob_name} cancelled")
            try:
                sink.write(chunk)
            except (OSError, ValueError) as e:
                raise StorageIOError(f"Failed to write {blob_name}: {e}") from e

            written += len(chunk)
        return written

    def _download_to_path(
        self,
        stream: Iterator[bytes],
        blob_name: str,
        destination: Path,
        cancel: threading.Event | None,
    ) -> int:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{destination.name}.",
                suffix=".partial",
                dir=destination.parent,
            )
        except OSError as e:
            raise StorageIOError(f"Cannot create download file for {destination}: {e}") from e

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                written = self._copy_chunks(stream, blob_name, f, cancel)
            try:
                os.replace(tmp_path, destination)
            except OSError as e:
                raise StorageIOError(f"Cannot move download into {destination}: {e}") from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        return written

    def _download_to_stream(
        self,
        stream: Iterator[bytes],
        blob_name: str,
        sink: BinaryIO,
        cancel: threading.Event | None,
    ) -> int:
        try:
            start = sink.tell() if _seekable(sink) else None
        except (OSError, ValueError) as e:
            raise StorageIOError(f"Cannot write {blob_name} to sink: {e}") from e
        try:
            return self._copy_chunks(stream, blob_name, sink, cancel)
        except BaseException:
            if start is not None and not getattr(sink, "closed", False):

                sink.seek(start)
                sink.truncate()
            raise

    def read_blob(self, container: ContainerHandle | str, blob_name: str) -> bytes:
        """Download a blob into memory."""
        buffer = BytesIO()
        self.download_blob(container, blob_name, buffer)
        return buffer.getvalue()

    def append_entry(
        self,
        append_blob_name: str,
        entry: bytes | str,
        container: ContainerHandle | str | None = None,
    ) -> BlobMetadata:
        """
        Append one entry to an append blob, creating the blob on first use.

        Each call is a single atomic append. Calls from one caller land in
        the order they were made.

        Raises:
            SizeLimitError: The entry exceeds the per-append limit or the
                blob would exceed its maximum size
        """
        name = _container_name(container) if container is not None else self.container
        data = entry.encode("utf-8") if isinstance(entry, str) else bytes(entry)
        if len(data) > self.backend.max_append_block_bytes:
            raise SizeLimitError(append_blob_name, len(data), self.backend.max_append_block_bytes)

        key = (name, append_blob_name)
        with self._append_lock:
            known = key in self._append_blobs
        if not known:
            self._create_append_blob(name, append_blob_name)

        try:
            metadata = self.backend.append_block(name, append_blob_name, data)
        except NotFoundError:
            if not known:
                raise
            # Deleted behind our back; recreate once
            self._create_append_blob(name, append_blob_name)
            metadata = self.backend.append_block(name, append_blob_name, data)

        logger.debug(
            "Appended entry",
            container=name,
            blob=append_blob_name,
            entry_bytes=len(data),
            size_bytes=metadata.size_bytes,
        )
        return metadata

    def _create_append_blob(self, container: str, blob_name: str) -> None:
        BlobNames.validate(blob_name)
        if self.backend.create_append_blob_if_absent(container, blob_name):
            logger.info("Created append blob", container=container, blob=blob_name)
        with self._append_lock:
            self._append_blobs.add((container, blob_name))

    def delete_blob(self, container: ContainerHandle | str, blob_name: str) -> None:
        """
        Delete a blob.

        Raises:
            NotFoundError: The blob does not exist
        """
        name = _container_name(container)
        self.backend.delete_blob(name, blob_name)
        with self._append_lock:
            self._append_blobs.discard((name, blob_name))
        logger.info("Deleted blob", container=name, blob=blob_name)


def _optional_setting(settings: SettingsProvider, key: str) -> str | None:
    try:
        return settings.get_setting(key)
    except ConfigurationError:
        return None


def build_backend(settings: SettingsProvider) -> BlobBackend:
    """Create the backend named by the ``storage_backend`` setting (default azure)."""
    kind = _optional_setting(settings, "storage_backend") or "azure"
    if kind == "memory":
        from blobkit.storage.memory import InMemoryBlobBackend

        return InMemoryBlobBackend()
    if kind != "azure":
        raise ValueError(f"Unknown storage backend: {kind}")

    from blobkit.storage.azure import AzureBlobBackend

    return AzureBlobBackend(
        connection_string=_optional_setting(settings, "azure_storage_connection_string"),
        account_url=_optional_setting(settings, "azure_storage_account_url"),
    )


@lru_cache
def get_facade() -> BlobStoreFacade:
    """Get cached facade built from application settings."""
    return BlobStoreFacade.from_settings(get_settings())
