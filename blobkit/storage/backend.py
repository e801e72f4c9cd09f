"""
BlobBackend: the capability set a storage backend must provide.
"""

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

from blobkit.models import AccessLevel, BlobMetadata, ListPage


@runtime_checkable
class BlobBackend(Protocol):
    """
    Container-scoped blob storage capabilities.

    Implementations raise only blobkit.storage.errors types. Each call is
    atomic at blob granularity.
    """

    max_append_block_bytes: int
    max_append_blob_bytes: int

    def create_container_if_absent(self, container: str) -> bool:
        """Create a container. Return True if it was created by this call."""
        ...

    def get_access(self, container: str) -> AccessLevel:
        """Return the container's current access level."""
        ...

    def set_access(self, container: str, level: AccessLevel) -> None:
        """Overwrite the container's access level."""
        ...

    def put_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        """Create or overwrite a block blob with the full content."""
        ...

    def list_segmented(
        self,
        container: str,
        prefix: str,
        delimiter: str | None,
        cursor: str | None,
        page_size: int,
    ) -> ListPage:
        """
        Return one page of the listing starting at ``cursor``.

        With a delimiter, names are grouped into DirectoryMarker items at
        the next delimiter after the prefix. The returned page holds at most
        ``page_size`` items and an opaque continuation, or None at the end.
        """
        ...

    def get_stream(self, container: str, name: str) -> Iterator[bytes]:
        """Stream the blob's content as chunks."""
        ...

    def create_append_blob_if_absent(self, container: str, name: str) -> bool:
        """Create an empty append blob. Return True if it was created."""
        ...

    def append_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        """Append one block atomically to an existing append blob."""
        ...

    def delete_blob(self, container: str, name: str) -> None:
        """Delete a blob, raising NotFoundError if it does not exist."""
        ...
