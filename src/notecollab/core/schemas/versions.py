"""Version history schemas."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field

from .common import CamelModel


class NoteVersion(CamelModel):
    """Immutable snapshot of a note's title and body."""

    model_config = ConfigDict(frozen=True)

    version_number: int = Field(ge=1)
    title: str = Field(default="")
    body: str = Field(default="")
    created_by: Optional[str] = Field(default=None)
    created_at: Optional[datetime] = Field(default=None)
    change_description: Optional[str] = Field(default=None)
    id: Optional[int] = Field(default=None, description="Server-side version record ID")


class VersionComparison(CamelModel):
    """Differences between two versions of the same note."""

    older: NoteVersion
    newer: NoteVersion
    title_changed: bool
    body_changed: bool
    title_diff: Optional[str] = Field(default=None)
    body_diff: Optional[str] = Field(default=None)


class RestoreVersionRequest(CamelModel):
    version_number: int = Field(ge=1)
