"""
Container models.
"""

from enum import Enum

from pydantic import Field

from blobkit.models.base import FrozenModel


class AccessLevel(str, Enum):
    """Container-wide public access level."""

    PRIVATE = "private"
    PUBLIC_BLOB = "blob"
    PUBLIC_CONTAINER = "container"


class ContainerHandle(FrozenModel):
    """Logical handle to a named container."""

    name: str = Field(..., min_length=3, max_length=63)
    access_level: AccessLevel | None = Field(
        AccessLevel.PRIVATE, description="None when the caller may not read the access policy"
    )
    created: bool = Field(False, description="True if this call created the container")
