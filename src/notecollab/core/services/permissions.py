"""Sharing and ownership rules.

Pure functions, no I/O. A note is shared for reading *or* for writing: the
tier decides which of the two user sets is live, the other one is kept empty.
Write access implies read access, so the effective readership of a note is
``readers | writers``; adding a writer never adds them to ``readers``.
"""

from typing import FrozenSet, Iterable, Optional, Tuple

from ..auth import Actor
from ..exceptions import PermissionDeniedError
from ..schemas import AccessTier, Note, PermissionBlock

UserSets = Tuple[FrozenSet[str], FrozenSet[str]]


def is_owner(note: Optional[Note], actor: Actor) -> bool:
    """A note that does not exist yet belongs to whoever is creating it."""
    if note is None:
        return True
    return note.author == actor.username


def can_edit_permissions(note: Optional[Note], actor: Actor) -> bool:
    return is_owner(note, actor)


def ensure_can_edit_permissions(note: Optional[Note], actor: Actor) -> None:
    if not can_edit_permissions(note, actor):
        raise PermissionDeniedError(
            "Only the owner can change the sharing settings of this note",
            note_id=note.id if note else None,
            actor=actor.username,
        )


def filter_permission_request(
    note: Optional[Note], actor: Actor, block: Optional[PermissionBlock]
) -> Optional[PermissionBlock]:
    """Return the block if the actor may apply it, otherwise ``None``."""
    if block is None or not can_edit_permissions(note, actor):
        return None
    return block


def apply_tier_change(current: UserSets, new_tier: AccessTier) -> UserSets:
    """Readers/writers after switching to ``new_tier``."""
    readers, writers = frozenset(current[0]), frozenset(current[1])
    if new_tier is AccessTier.PRIVATE:
        return frozenset(), frozenset()
    if new_tier is AccessTier.SHARED_READ:
        return readers, frozenset()
    if new_tier is AccessTier.SHARED_WRITE:
        return frozenset(), writers
    raise ValueError(f"Unknown access tier: {new_tier!r}")


def toggle_user(
    tier: AccessTier, username: str, readers: Iterable[str], writers: Iterable[str]
) -> UserSets:
    """Add or remove ``username`` in the set the tier makes live."""
    readers, writers = frozenset(readers), frozenset(writers)
    if tier is AccessTier.PRIVATE:
        return readers, writers
    if tier is AccessTier.SHARED_READ:
        return readers ^ {username}, writers
    if tier is AccessTier.SHARED_WRITE:
        return readers, writers ^ {username}
    raise ValueError(f"Unknown access tier: {tier!r}")


def effective_readers(readers: Iterable[str], writers: Iterable[str]) -> FrozenSet[str]:
    return frozenset(readers) | frozenset(writers)


def can_read(note: Note, username: str) -> bool:
    if note.author == username:
        return True
    if note.access_tier is AccessTier.PRIVATE:
        return False
    return username in effective_readers(note.readers, note.writers)


def can_write(note: Note, username: str) -> bool:
    if note.author == username:
        return True
    return note.access_tier is AccessTier.SHARED_WRITE and username in note.writers
