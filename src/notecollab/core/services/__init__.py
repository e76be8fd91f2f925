"""
Edit-controller services.

The permission rules are pure functions; the history store, lock controller
and edit session drive the note service through :class:`NotesApiClient`.
"""

from . import permissions
from .edit_session import EditFormState, NoteEditSession, SessionState
from .lock_controller import EditLock, EditLockController, LockState
from .note_cache import NoteCache
from .version_history import VersionHistoryStore

__all__ = [
    "permissions",
    # Sessions
    "EditFormState",
    "NoteEditSession",
    "SessionState",
    # Locks
    "EditLock",
    "EditLockController",
    "LockState",
    # Stores
    "NoteCache",
    "VersionHistoryStore",
]
