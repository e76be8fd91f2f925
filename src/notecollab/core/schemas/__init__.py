"""
Wire schemas for the note service.
"""

from .common import CamelModel, ErrorResponse
from .locks import LockResponse, LockStatus
from .notes import (
    AccessTier,
    Note,
    NoteCreate,
    NoteLock,
    NoteUpdate,
    PermissionBlock,
    UserStats,
)
from .versions import NoteVersion, RestoreVersionRequest, VersionComparison

__all__ = [
    # Common
    "CamelModel",
    "ErrorResponse",
    # Locks
    "LockResponse",
    "LockStatus",
    # Notes
    "AccessTier",
    "Note",
    "NoteCreate",
    "NoteLock",
    "NoteUpdate",
    "PermissionBlock",
    "UserStats",
    # Versions
    "NoteVersion",
    "RestoreVersionRequest",
    "VersionComparison",
]
