"""
Tests for the in-memory backend.
"""

import threading

import pytest

from blobkit.models import AccessLevel, BlobKind, DirectoryMarker
from blobkit.storage import (
    BlobBackend,
    InMemoryBlobBackend,
    NotFoundError,
    SizeLimitError,
    StoragePermissionError,
)

CONTAINER = "memory-test"


@pytest.fixture
def backend() -> InMemoryBlobBackend:
    backend = InMemoryBlobBackend(chunk_size=4)
    backend.create_container_if_absent(CONTAINER)
    return backend


def test_satisfies_protocol(backend):
    assert isinstance(backend, BlobBackend)


class TestContainers:
    """Tests for container creation and access."""

    def test_create_is_idempotent(self, backend):
        assert backend.create_container_if_absent("other") is True
        assert backend.create_container_if_absent("other") is False
        assert backend.container_names() == [CONTAINER, "other"]

    def test_access_overwritten(self, backend):
        backend.set_access(CONTAINER, AccessLevel.PUBLIC_CONTAINER)
        backend.set_access(CONTAINER, AccessLevel.PUBLIC_BLOB)
        assert backend.get_access(CONTAINER) is AccessLevel.PUBLIC_BLOB

    def test_non_admin_cannot_set_access(self):
        backend = InMemoryBlobBackend(admin=False)
        backend.create_container_if_absent(CONTAINER)

        with pytest.raises(StoragePermissionError):
            backend.set_access(CONTAINER, AccessLevel.PUBLIC_BLOB)
        assert backend.get_access(CONTAINER) is AccessLevel.PRIVATE

    def test_missing_container(self, backend):
        with pytest.raises(NotFoundError) as exc_info:
            backend.put_block("missing", "x", b"data")
        assert exc_info.value.blob_name is None


class TestBlocks:
    """Tests for block blob storage and streaming."""

    def test_put_and_stream_in_chunks(self, backend):
        metadata = backend.put_block(CONTAINER, "x", b"0123456789")

        assert metadata.kind is BlobKind.BLOCK
        assert metadata.size_bytes == 10
        assert list(backend.get_stream(CONTAINER, "x")) == [b"0123", b"4567", b"89"]

    def test_get_stream_missing_raises_immediately(self, backend):
        with pytest.raises(NotFoundError):
            backend.get_stream(CONTAINER, "missing")

    def test_overwrite_changes_etag(self, backend):
        first = backend.put_block(CONTAINER, "x", b"one")
        second = backend.put_block(CONTAINER, "x", b"three")

        assert second.size_bytes == 5
        assert first.etag != second.etag
        assert backend.blob_names(CONTAINER) == ["x"]

    def test_delete(self, backend):
        backend.put_block(CONTAINER, "x", b"data")
        backend.delete_blob(CONTAINER, "x")

        assert backend.blob_names(CONTAINER) == []
        with pytest.raises(NotFoundError):
            backend.delete_blob(CONTAINER, "x")


class TestSegmentedListing:
    """Tests for cursor-based paging."""

    def test_native_order_not_lexical(self, backend):
        for name in ("c", "a", "b"):
            backend.put_block(CONTAINER, name, b"")

        page = backend.list_segmented(CONTAINER, "", None, None, 10)

        assert [item.name for item in page.items] == ["c", "a", "b"]
        assert page.continuation is None

    def test_paging(self, backend):
        for i in range(5):
            backend.put_block(CONTAINER, f"blob{i}", b"")

        first = backend.list_segmented(CONTAINER, "", None, None, 2)
        second = backend.list_segmented(CONTAINER, "", None, first.continuation, 2)
        third = backend.list_segmented(CONTAINER, "", None, second.continuation, 2)

        assert len(first.items) == 2
        assert len(second.items) == 2
        assert len(third.items) == 1
        assert third.continuation is None

    def test_delete_between_pages_skips_nothing(self, backend):
        for i in range(5):
            backend.put_block(CONTAINER, f"blob{i}", b"")

        first = backend.list_segmented(CONTAINER, "", None, None, 2)
        backend.delete_blob(CONTAINER, "blob0")
        second = backend.list_segmented(CONTAINER, "", None, first.continuation, 2)

        assert [item.name for item in first.items] == ["blob0", "blob1"]
        assert [item.name for item in second.items] == ["blob2", "blob3"]

    def test_insert_between_pages_repeats_nothing(self, backend):
        for i in range(4):
            backend.put_block(CONTAINER, f"blob{i}", b"")

        first = backend.list_segmented(CONTAINER, "", None, None, 2)
        backend.put_block(CONTAINER, "new", b"")
        backend.put_block(CONTAINER, "blob0", b"rewritten")
        second = backend.list_segmented(CONTAINER, "", None, first.continuation, 2)
        third = backend.list_segmented(CONTAINER, "", None, second.continuation, 2)

        names = [item.name for page in (first, second, third) for item in page.items]
        assert names == ["blob0", "blob1", "blob2", "blob3", "new"]
        assert third.continuation is None

    def test_directory_not_repeated_across_pages(self, backend):
        for name in ("a/1", "top", "a/2", "b/1"):
            backend.put_block(CONTAINER, name, b"")

        first = backend.list_segmented(CONTAINER, "", "/", None, 1)
        second = backend.list_segmented(CONTAINER, "", "/", first.continuation, 1)
        third = backend.list_segmented(CONTAINER, "", "/", second.continuation, 1)

        names = [item.name for page in (first, second, third) for item in page.items]
        assert names == ["a/", "top", "b/"]
        assert third.continuation is None


    def test_page_size_capped(self):
        backend = InMemoryBlobBackend(max_page_size=3)
        backend.create_container_if_absent(CONTAINER)
        for i in range(5):
            backend.put_block(CONTAINER, f"blob{i}", b"")

        page = backend.list_segmented(CONTAINER, "", None, None, 100)

        assert len(page.items) == 3
        assert page.continuation

    def test_delimiter_groups_directories(self, backend):
        for name in ("a/b", "top", "a/c", "d/e/f"):
            backend.put_block(CONTAINER, name, b"")

        page = backend.list_segmented(CONTAINER, "", "/", None, 10)

        assert [item.name for item in page.items] == ["a/", "top", "d/"]
        assert isinstance(page.items[0], DirectoryMarker)

    def test_delimiter_below_prefix(self, backend):
        for name in ("d/e/f", "d/g", "other"):
            backend.put_block(CONTAINER, name, b"")

        page = backend.list_segmented(CONTAINER, "d/", "/", None, 10)

        assert [item.name for item in page.items] == ["d/e/", "d/g"]

    def test_invalid_page_size(self, backend):
        with pytest.raises(ValueError):
            backend.list_segmented(CONTAINER, "", None, None, 0)


class TestAppendBlobs:
    """Tests for append blobs and their limits."""

    def test_create_if_absent(self, backend):
        assert backend.create_append_blob_if_absent(CONTAINER, "log") is True
        assert backend.create_append_blob_if_absent(CONTAINER, "log") is False

    def test_append_to_missing_blob(self, backend):
        with pytest.raises(NotFoundError):
            backend.append_block(CONTAINER, "log", b"entry")

    def test_append_to_block_blob(self, backend):
        backend.put_block(CONTAINER, "x", b"data")
        with pytest.raises(NotFoundError):
            backend.append_block(CONTAINER, "x", b"entry")

    def test_block_limit(self):
        backend = InMemoryBlobBackend(max_append_block_bytes=4)
        backend.create_container_if_absent(CONTAINER)
        backend.create_append_blob_if_absent(CONTAINER, "log")

        with pytest.raises(SizeLimitError) as exc_info:
            backend.append_block(CONTAINER, "log", b"12345")
        assert exc_info.value.limit == 4

    def test_blob_limit(self):
        backend = InMemoryBlobBackend(max_append_block_bytes=4, max_append_blob_bytes=6)
        backend.create_container_if_absent(CONTAINER)
        backend.create_append_blob_if_absent(CONTAINER, "log")
        backend.append_block(CONTAINER, "log", b"1234")

        with pytest.raises(SizeLimitError):
            backend.append_block(CONTAINER, "log", b"567")
        assert b"".join(backend.get_stream(CONTAINER, "log")) == b"1234"

    def test_concurrent_appends_all_land(self, backend):
        backend.create_append_blob_if_absent(CONTAINER, "log")

        def worker(tag: bytes):
            for _ in range(50):
                backend.append_block(CONTAINER, "log", tag)

        threads = [threading.Thread(target=worker, args=(t,)) for t in (b"a", b"b", b"c")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        content = b"".join(backend.get_stream(CONTAINER, "log"))
        assert len(content) == 150
        assert content.count(b"a") == content.count(b"b") == content.count(b"c") == 50
