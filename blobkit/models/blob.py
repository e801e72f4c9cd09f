"""
Blob reference, metadata and listing models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import Field, field_validator

from blobkit.models.base import FrozenModel


class BlobKind(str, Enum):
    """Kinds of items a listing can yield."""

    BLOCK = "block"
    APPEND = "append"
    PAGE = "page"
    DIRECTORY = "directory"


class BlobRef(FrozenModel):
    """Identifies a blob within a container."""

    name: str = Field(..., min_length=1, description="'/'-delimited blob name")
    is_append_only: bool = False


class BlobMetadata(FrozenModel):
    """Properties of a stored (leaf) blob."""

    name: str = Field(..., min_length=1)
    size_bytes: int = Field(..., ge=0)
    last_modified: datetime
    kind: Literal[BlobKind.BLOCK, BlobKind.APPEND, BlobKind.PAGE]
    url: str | None = None
    etag: str | None = None

    @field_validator("last_modified")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def ref(self) -> BlobRef:
        return BlobRef(name=self.name, is_append_only=self.kind is BlobKind.APPEND)


class DirectoryMarker(FrozenModel):
    """
    Synthetic entry standing for a virtual directory in a hierarchical listing.

    Never a leaf blob: it only groups names sharing a '/'-delimited prefix.
    """

    prefix: str = Field(..., min_length=1)
    kind: Literal[BlobKind.DIRECTORY] = BlobKind.DIRECTORY

    @field_validator("prefix")
    @classmethod
    def ensure_trailing_delimiter(cls, v: str) -> str:
        if not v.endswith("/"):
            raise ValueError(f"Directory prefix must end with '/': {v}")
        return v

    @property
    def name(self) -> str:
        return self.prefix


ListItem = BlobMetadata | DirectoryMarker


class ListPage(FrozenModel):
    """One bounded page of a segmented listing."""

    items: tuple[ListItem, ...] = ()
    continuation: str | None = None

    @property
    def is_last(self) -> bool:
        return not self.continuation
