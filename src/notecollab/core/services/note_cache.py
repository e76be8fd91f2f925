"""Session-scoped note cache."""

from typing import TYPE_CHECKING, Dict, List, Optional

from ..logging import get_logger
from ..schemas import Note

if TYPE_CHECKING:
    from ..client import NotesApiClient

logger = get_logger("cache")


class NoteCache:
    """Local copy of the notes a session has seen.

    The server stays the source of truth: ``merge`` never lets an older
    snapshot overwrite a newer one, and ``refresh`` always replaces the entry
    with whatever the server returns.
    """

    def __init__(self):
        self._notes: Dict[int, Note] = {}

    def __contains__(self, note_id: int) -> bool:
        return note_id in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def get(self, note_id: int) -> Optional[Note]:
        return self._notes.get(note_id)

    def all(self) -> List[Note]:
        return list(self._notes.values())

    def put(self, note: Note) -> Note:
        self._notes[note.id] = note
        return note

    def merge(self, note: Note) -> Note:
        """Store ``note`` unless the cache already holds a newer version."""
        current = self._notes.get(note.id)
        if current is not None and current.version_number > note.version_number:
            logger.warning(
                "Ignoring stale note snapshot",
                extra={
                    "note_id": note.id,
                    "cached_version": current.version_number,
                    "incoming_version": note.version_number,
                },
            )
            return current
        self._notes[note.id] = note
        return note

    def invalidate(self, note_id: Optional[int] = None) -> None:
        """Drop one note, or everything when no id is given."""
        if note_id is None:
            self._notes.clear()
        else:
            self._notes.pop(note_id, None)

    async def refresh(self, client: "NotesApiClient", note_id: int) -> Note:
        note = await client.get_note(note_id)
        return self.put(note)
