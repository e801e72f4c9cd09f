"""
Shared fixtures.
"""

import pytest

from blobkit.storage import BlobStoreFacade, InMemoryBlobBackend

CONTAINER = "tutorial-container"


@pytest.fixture
def backend() -> InMemoryBlobBackend:
    return InMemoryBlobBackend()


@pytest.fixture
def facade(backend: InMemoryBlobBackend) -> BlobStoreFacade:
    facade = BlobStoreFacade(backend, container=CONTAINER, page_size=2)
    facade.ensure_container()
    return facade
