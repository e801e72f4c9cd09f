"""
Value models for containers, blobs and listings.
"""

from blobkit.models.base import FrozenModel, utc_now
from blobkit.models.blob import (
    BlobKind,
    BlobMetadata,
    BlobRef,
    DirectoryMarker,
    ListItem,
    ListPage,
)
from blobkit.models.container import AccessLevel, ContainerHandle

__all__ = [
    "AccessLevel",
    "BlobKind",
    "BlobMetadata",
    "BlobRef",
    "ContainerHandle",
    "DirectoryMarker",
    "FrozenModel",
    "ListItem",
    "ListPage",
    "utc_now",
]
