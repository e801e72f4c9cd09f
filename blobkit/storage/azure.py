"""
Azure Blob Storage backend.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from azure.core import MatchConditions
from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceModifiedError,
    ResourceNotFoundError,
)
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobPrefix, BlobServiceClient, BlobType

from blobkit.models import AccessLevel, BlobKind, BlobMetadata, DirectoryMarker, ListPage, utc_now
from blobkit.storage.errors import (
    NotFoundError,
    SizeLimitError,
    StorageError,
    StoragePermissionError,
    TransportError,
)

logger = structlog.get_logger(__name__)

# Append blobs: 4 MiB per append block, 50,000 blocks per blob
MAX_APPEND_BLOCK_BYTES = 4 * 1024 * 1024
MAX_APPEND_BLOB_BYTES = 50_000 * MAX_APPEND_BLOCK_BYTES

SIZE_LIMIT_ERROR_CODES = {
    "RequestBodyTooLarge",
    "BlockCountExceedsLimit",
    "MaxBlobSizeConditionNotMet",
}

# Timeouts and throttling; every other 4xx is the request itself being refused
RETRYABLE_STATUSES = {408, 429}


def _error_from_http(
    exc: HttpResponseError,
    container: str,
    blob_name: str | None,
) -> StorageError:
    """Map a service error response onto the storage error taxonomy."""
    status = exc.status_code
    code = getattr(exc, "error_code", None)

    if status in (401, 403):
        return StoragePermissionError(f"Access denied for {container}: {code or status}")
    if status == 413 or code in SIZE_LIMIT_ERROR_CODES:
        return SizeLimitError(blob_name or container, what="blob")
    if code == "InvalidBlobType":
        # An append was attempted on a blob of another type
        return NotFoundError(container, blob_name)
    if status is None or status >= 500 or status in RETRYABLE_STATUSES:
        return TransportError(f"Storage request failed for {container}: {code or status}")
    return TransportError(
        f"Storage request rejected for {container}: {code or status}",
        retryable=False,
    )



@contextmanager
def translate_errors(container: str, blob_name: str | None = None):
    """Re-raise Azure SDK exceptions as storage errors."""
    try:
        yield
    except ResourceNotFoundError as e:
        raise NotFoundError(container, blob_name) from e
    except ClientAuthenticationError as e:
        raise StoragePermissionError(str(e)) from e
    except HttpResponseError as e:
        raise _error_from_http(e, container, blob_name) from e
    except AzureError as e:
        raise TransportError(str(e)) from e


def _blob_kind(blob_type: Any) -> BlobKind:
    value = getattr(blob_type, "value", blob_type)
    match value:
        case "AppendBlob":
            return BlobKind.APPEND
        case "PageBlob":
            return BlobKind.PAGE
        case _:
            return BlobKind.BLOCK


class AzureBlobBackend:
    """
    Blob backend for Azure Blob Storage.

    Supports both connection string and Managed Identity authentication.
    """

    max_append_block_bytes = MAX_APPEND_BLOCK_BYTES
    max_append_blob_bytes = MAX_APPEND_BLOB_BYTES

    def __init__(
        self,
        connection_string: str | None = None,
        account_url: str | None = None,
        service_client: BlobServiceClient | None = None,
    ):
        if service_client is not None:
            self.service_client = service_client
        elif connection_string:
            self.service_client = BlobServiceClient.from_connection_string(connection_string)
        elif account_url:
            # Use Managed Identity
            credential = DefaultAzureCredential()
            self.service_client = BlobServiceClient(account_url, credential=credential)
        else:
            raise ValueError("Either connection_string or account_url must be provided")

    def _blob_client(self, container: str, name: str):
        return self.service_client.get_blob_client(container=container, blob=name)

    def _to_metadata(self, container: str, props: Any, url: str | None = None) -> BlobMetadata:
        return BlobMetadata(
            name=props.name,
            size_bytes=props.size or 0,
            last_modified=props.last_modified or utc_now(),
            kind=_blob_kind(props.blob_type),
            url=url or self._blob_client(container, props.name).url,
            etag=props.etag,
        )

    def create_container_if_absent(self, container: str) -> bool:
        with translate_errors(container):
            try:
                self.service_client.create_container(container)
            except ResourceExistsError:
                return False
        logger.info("Created container", container=container)
        return True

    def get_access(self, container: str) -> AccessLevel:
        container_client = self.service_client.get_container_client(container)
        with translate_errors(container):
            policy = container_client.get_container_access_policy()
        public_access = policy.get("public_access")
        return AccessLevel(public_access) if public_access else AccessLevel.PRIVATE

    def set_access(self, container: str, level: AccessLevel) -> None:
        # Stored access policies are replaced along with the public access level
        container_client = self.service_client.get_container_client(container)
        public_access = None if level is AccessLevel.PRIVATE else level.value
        with translate_errors(container):
            container_client.set_container_access_policy(
                signed_identifiers={},
                public_access=public_access,
            )

    def put_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        blob_client = self._blob_client(container, name)
        with translate_errors(container, name):
            blob_client.upload_blob(data, blob_type=BlobType.BLOCKBLOB, overwrite=True)
            props = blob_client.get_blob_properties()
        return self._to_metadata(container, props, url=blob_client.url)

    def list_segmented(
        self,
        container: str,
        prefix: str,
        delimiter: str | None,
        cursor: str | None,
        page_size: int,
    ) -> ListPage:
        container_client = self.service_client.get_container_client(container)
        with translate_errors(container):
            if delimiter:
                paged = container_client.walk_blobs(
                    name_starts_with=prefix or None,
                    delimiter=delimiter,
                    results_per_page=page_size,
                )
            else:
                paged = container_client.list_blobs(
                    name_starts_with=prefix or None,
                    results_per_page=page_size,
                )
            pages = paged.by_page(continuation_token=cursor)
            try:
                raw_items = list(next(pages))
            except StopIteration:
                return ListPage()
            continuation = pages.continuation_token

        items = []
        for raw in raw_items:
            if isinstance(raw, BlobPrefix):
                items.append(DirectoryMarker(prefix=raw.name))
            else:
                items.append(self._to_metadata(container, raw))
        return ListPage(items=tuple(items), continuation=continuation or None)

    def get_stream(self, container: str, name: str) -> Iterator[bytes]:
        blob_client = self._blob_client(container, name)
        with translate_errors(container, name):
            downloader = blob_client.download_blob()
        return self._iter_chunks(downloader, container, name)

    def _iter_chunks(self, downloader: Any, container: str, name: str) -> Iterator[bytes]:
        with translate_errors(container, name):
            yield from downloader.chunks()

    def create_append_blob_if_absent(self, container: str, name: str) -> bool:
        blob_client = self._blob_client(container, name)
        with translate_errors(container, name):
            try:
                blob_client.create_append_blob(match_condition=MatchConditions.IfMissing)
            except (ResourceExistsError, ResourceModifiedError):
                return False
        logger.info("Created append blob", container=container, blob=name)
        return True

    def append_block(self, container: str, name: str, data: bytes) -> BlobMetadata:
        if len(data) > self.max_append_block_bytes:
            raise SizeLimitError(name, len(data), self.max_append_block_bytes)

        blob_client = self._blob_client(container, name)
        with translate_errors(container, name):
            blob_client.append_block(data)
            props = blob_client.get_blob_properties()
        return self._to_metadata(container, props, url=blob_client.url)

    def delete_blob(self, container: str, name: str) -> None:
        blob_client = self._blob_client(container, name)
        with translate_errors(container, name):
            blob_client.delete_blob()
