"""Edit-lock endpoint schemas."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, Field

from .common import CamelModel


class LockResponse(CamelModel):
    """Body of lock acquire / refresh / release calls."""

    success: bool = Field(default=False)
    locked_by: Optional[str] = Field(default=None)
    message: Optional[str] = Field(default=None)


class LockStatus(CamelModel):
    """Server view of a note's lock."""

    locked: bool = Field(default=False, validation_alias=AliasChoices("locked", "isLocked"))
    locked_by: Optional[str] = Field(default=None)
    lock_expires_at: Optional[datetime] = Field(default=None)
    can_edit: bool = Field(default=False)
