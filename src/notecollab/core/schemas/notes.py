"""
Note schemas.

These schemas define the wire contracts for notes, their sharing settings and
the create/update requests sent to the note service.
"""

from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import AliasChoices, Field, field_serializer, model_validator

from .common import CamelModel


class AccessTier(str, Enum):
    """Who besides the owner may see or modify a note."""

    PRIVATE = "PRIVATE"
    SHARED_READ = "SHARED_READ"
    SHARED_WRITE = "SHARED_WRITE"


class NoteLock(CamelModel):
    """Lock information embedded in a note snapshot."""

    held_by_user: str = Field(validation_alias=AliasChoices("heldByUser", "lockedByUser", "held_by_user"))
    expires_at: datetime = Field(validation_alias=AliasChoices("expiresAt", "lockExpiresAt", "expires_at"))


class Note(CamelModel):
    """A note as returned by the note service."""

    id: int = Field(description="Note ID")
    title: str = Field(description="Note title")
    body: str = Field(description="Note body")
    author: str = Field(description="Username of the owner")
    tags: FrozenSet[str] = Field(default_factory=frozenset)
    collections: FrozenSet[str] = Field(default_factory=frozenset)
    access_tier: AccessTier = Field(default=AccessTier.PRIVATE)
    readers: FrozenSet[str] = Field(default_factory=frozenset)
    writers: FrozenSet[str] = Field(default_factory=frozenset)
    version_number: int = Field(default=1, ge=1)

    # caller-relative rights computed by the server
    editable_by_current_actor: bool = Field(
        default=False,
        validation_alias=AliasChoices("editableByCurrentActor", "canEdit", "editable_by_current_actor"),
    )
    deletable_by_current_actor: bool = Field(
        default=False,
        validation_alias=AliasChoices("deletableByCurrentActor", "canDelete", "deletable_by_current_actor"),
    )

    lock: Optional[NoteLock] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @field_serializer("tags", "collections", "readers", "writers")
    def _sorted(self, value: FrozenSet[str]) -> List[str]:
        return sorted(value)


class PermissionBlock(CamelModel):
    """Sharing settings submitted by the owner."""

    access_tier: AccessTier = Field(default=AccessTier.PRIVATE)
    readers: FrozenSet[str] = Field(default_factory=frozenset)
    writers: FrozenSet[str] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def check_private_is_empty(self) -> "PermissionBlock":
        if self.access_tier is AccessTier.PRIVATE and (self.readers or self.writers):
            raise ValueError("A private note cannot have readers or writers")
        return self

    @field_serializer("readers", "writers")
    def _sorted(self, value: FrozenSet[str]) -> List[str]:
        return sorted(value)

    @classmethod
    def from_note(cls, note: Note) -> "PermissionBlock":
        return cls(access_tier=note.access_tier, readers=note.readers, writers=note.writers)

    def differs_from(self, note: Note) -> bool:
        """Order-independent comparison with the note's current sharing settings."""
        return (
            self.access_tier is not note.access_tier
            or self.readers != note.readers
            or self.writers != note.writers
        )


class NoteCreate(CamelModel):
    """Note creation request: content and sharing in a single call."""

    title: str
    body: str
    tags: List[str] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)
    permissions: PermissionBlock = Field(default_factory=PermissionBlock)


class NoteUpdate(CamelModel):
    """Content-only update request."""

    id: int
    title: str
    body: str
    tags: List[str] = Field(default_factory=list)
    collections: List[str] = Field(default_factory=list)
    base_version_number: Optional[int] = Field(
        default=None, description="Version the edit started from, for stale-write detection"
    )


class UserStats(CamelModel):
    """Tag suggestions and collection names for the current actor."""

    all_tags: List[str] = Field(default_factory=list)
    all_collections: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("allCollections", "allFolders", "all_collections"),
    )
