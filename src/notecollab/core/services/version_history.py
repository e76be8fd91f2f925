"""Version history of a single note."""

import difflib
from typing import List, Optional

from ..client import NotesApiClient
from ..exceptions import NotFoundError, NoteValidationError
from ..logging import get_logger
from ..schemas import Note, NoteVersion, VersionComparison
from .note_cache import NoteCache

logger = get_logger("versions")


class VersionHistoryStore:
    """Loads, orders and restores the append-only version list of a note.

    Restoring never rewrites history: the server records the restored content
    as a brand-new version, and the store reloads the list afterwards so the
    local view follows the server's counter.
    """

    def __init__(self, client: NotesApiClient, cache: Optional[NoteCache] = None):
        self.client = client
        self.cache = cache if cache is not None else NoteCache()
        self.note_id: Optional[int] = None
        self._versions: List[NoteVersion] = []

    @property
    def versions(self) -> List[NoteVersion]:
        return list(self._versions)

    async def load(self, note_id: int) -> List[NoteVersion]:
        """Fetch the full history; a missing note simply has no versions."""
        self.note_id = note_id
        try:
            versions = await self.client.list_versions(note_id)
        except NotFoundError:
            logger.info("No version history found", extra={"note_id": note_id})
            versions = []
        self._versions = versions
        return self.sorted()

    def sorted(self) -> List[NoteVersion]:
        """Newest first; the first entry is the current version."""
        return sorted(self._versions, key=lambda v: v.version_number, reverse=True)

    @property
    def latest(self) -> Optional[NoteVersion]:
        ordered = self.sorted()
        return ordered[0] if ordered else None

    def is_latest(self, version: NoteVersion) -> bool:
        latest = self.latest
        return latest is not None and latest.version_number == version.version_number

    def get(self, version_number: int) -> Optional[NoteVersion]:
        return next((v for v in self._versions if v.version_number == version_number), None)

    def unique_contributors(self) -> int:
        return len({v.created_by for v in self._versions if v.created_by})

    def invalidate(self) -> None:
        self._versions = []

    async def fetch_version(self, note_id: int, version_number: int) -> NoteVersion:
        _check_restore_args(note_id, version_number)
        return await self.client.get_version(note_id, version_number)

    async def restore(self, note_id: int, version_number: int) -> Note:
        """Make ``version_number``'s content current again as a new version."""
        _check_restore_args(note_id, version_number)
        previous = self.cache.get(note_id)

        note = await self.client.restore_version(note_id, version_number)
        if previous is not None and note.version_number <= previous.version_number:
            # the response did not advance the counter; trust a fresh read instead
            logger.warning(
                "Restore response did not advance the version counter",
                extra={"note_id": note_id, "version": note.version_number},
            )
            note = await self.cache.refresh(self.client, note_id)
        else:
            note = self.cache.merge(note)

        logger.info(
            "Version restored",
            extra={"note_id": note_id, "restored": version_number, "new_version": note.version_number},
        )
        await self.load(note_id)
        return note

    def compare(self, first: NoteVersion, second: NoteVersion) -> VersionComparison:
        older, newer = sorted((first, second), key=lambda v: v.version_number)
        title_changed = older.title != newer.title
        body_changed = older.body != newer.body
        return VersionComparison(
            older=older,
            newer=newer,
            title_changed=title_changed,
            body_changed=body_changed,
            title_diff=_diff(older.title, newer.title, older, newer) if title_changed else None,
            body_diff=_diff(older.body, newer.body, older, newer) if body_changed else None,
        )


def _check_restore_args(note_id: int, version_number: int) -> None:
    if note_id is None or note_id <= 0:
        raise NoteValidationError("Invalid note id", field="note_id", value=note_id)
    if version_number is None or version_number <= 0:
        raise NoteValidationError(
            "Invalid version number", field="version_number", value=version_number
        )


def _diff(old: str, new: str, older: NoteVersion, newer: NoteVersion) -> str:
    return "\n".join(
        difflib.unified_diff(
            old.splitlines(),
            new.splitlines(),
            fromfile=f"v{older.version_number}",
            tofile=f"v{newer.version_number}",
            lineterm="",
        )
    )
