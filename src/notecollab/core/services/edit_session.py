"""
Note edit session.

Drives one "open note for editing" interaction: lock, hydrate the form,
validate, persist the content and then the sharing settings, release.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Set

from ...config import Settings, get_settings
from ..auth import Actor
from ..client import NotesApiClient
from ..exceptions import (
    ErrorCode,
    InvalidStateError,
    LockExpiredError,
    NoteCollabError,
    NoteValidationError,
)
from ..logging import get_logger
from ..schemas import AccessTier, Note, NoteCreate, NoteUpdate, PermissionBlock
from . import permissions
from .lock_controller import EditLockController, LockState
from .note_cache import NoteCache

logger = get_logger("sessions")


@dataclass
class EditFormState:
    """Editable copy of a note; nothing here reaches the server until submit."""

    title: str = ""
    body: str = ""
    tags: List[str] = field(default_factory=list)
    collections: Set[str] = field(default_factory=set)
    access_tier: AccessTier = AccessTier.PRIVATE
    readers: FrozenSet[str] = field(default_factory=frozenset)
    writers: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_note(cls, note: Note) -> "EditFormState":
        return cls(
            title=note.title,
            body=note.body,
            tags=sorted(note.tags),
            collections=set(note.collections),
            access_tier=note.access_tier,
            readers=note.readers,
            writers=note.writers,
        )

    @property
    def character_count(self) -> int:
        return len(self.body)

    def permission_block(self) -> PermissionBlock:
        """Sharing as the form shows it; tier changes already went through set_access_tier."""
        if self.access_tier is AccessTier.PRIVATE:
            return PermissionBlock(access_tier=AccessTier.PRIVATE)
        return PermissionBlock(
            access_tier=self.access_tier, readers=self.readers, writers=self.writers
        )


class SessionState(str, Enum):
    NEW = "NEW"
    OPEN = "OPEN"
    SUBMITTING = "SUBMITTING"
    CLOSED = "CLOSED"


class NoteEditSession:
    """One create or edit interaction on a note.

    Editing an existing note holds its edit lock for the whole session.
    Creating a note never locks. Only the owner's sharing changes are sent;
    anyone else's are dropped with a warning before any request is made.
    """

    def __init__(
        self,
        client: NotesApiClient,
        actor: Actor,
        note: Optional[Note] = None,
        *,
        cache: Optional[NoteCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.client = client
        self.actor = actor
        self.note = note
        self.cache = cache if cache is not None else NoteCache()
        self.settings = settings or get_settings()

        self.state = SessionState.NEW
        self.form: Optional[EditFormState] = None
        self.lock: Optional[EditLockController] = None
        self.saved_note: Optional[Note] = None
        self.warnings: List[str] = []

    async def __aenter__(self) -> "NoteEditSession":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_new(self) -> bool:
        return self.note is None

    @property
    def is_owner(self) -> bool:
        return permissions.is_owner(self.note, self.actor)

    @property
    def can_edit_permissions(self) -> bool:
        return permissions.can_edit_permissions(self.note, self.actor)

    async def open(self) -> EditFormState:
        if self.state is not SessionState.NEW:
            raise InvalidStateError("Session already opened", state=self.state.value)

        if self.note is not None:
            self.lock = EditLockController(
                self.client, self.note.id, settings=self.settings, on_lock_lost=self._on_lock_lost
            )
            try:
                await self.lock.acquire()
            except NoteCollabError:
                self.state = SessionState.CLOSED
                raise
            self.note = self.cache.merge(self.note)
            self.form = EditFormState.from_note(self.note)
        else:
            self.form = EditFormState()

        self.state = SessionState.OPEN
        logger.info(
            "Edit session opened",
            extra={
                "note_id": self.note.id if self.note else None,
                "actor": self.actor.username,
                "owner": self.is_owner,
            },
        )
        return self.form

    # form helpers

    def set_access_tier(self, tier: AccessTier) -> None:
        form = self._require_form()
        permissions.ensure_can_edit_permissions(self.note, self.actor)
        form.readers, form.writers = permissions.apply_tier_change((form.readers, form.writers), tier)
        form.access_tier = tier

    def toggle_user(self, username: str) -> None:
        form = self._require_form()
        permissions.ensure_can_edit_permissions(self.note, self.actor)
        form.readers, form.writers = permissions.toggle_user(
            form.access_tier, username, form.readers, form.writers
        )

    def add_tag(self, tag: str) -> bool:
        """Add a trimmed tag; blank, duplicate or over-long tags are ignored."""
        form = self._require_form()
        tag = tag.strip()
        if not tag or tag in form.tags or len(tag) > self.settings.tag_max_length:
            return False
        form.tags.append(tag)
        return True

    def remove_tag(self, tag: str) -> None:
        form = self._require_form()
        form.tags = [t for t in form.tags if t != tag]

    def tag_suggestions(
        self, all_tags: Iterable[str], text: str, limit: Optional[int] = None
    ) -> List[str]:
        form = self._require_form()
        needle = text.lower()
        if not needle:
            return []
        limit = limit if limit is not None else self.settings.tag_suggestion_limit
        matches = [t for t in all_tags if needle in t.lower() and t not in form.tags]
        return matches[:limit]

    def toggle_collection(self, name: str) -> None:
        form = self._require_form()
        form.collections ^= {name}

    def validate(self) -> None:
        """Raise :class:`NoteValidationError` listing every invalid field."""
        form = self._require_form()
        limits = self.settings
        title = form.title.strip()
        body = form.body.strip()
        problems = []

        if not title:
            problems.append(("title", "Title is required", ErrorCode.TITLE_REQUIRED))
        elif len(title) > limits.title_max_length:
            problems.append((
                "title",
                f"Title cannot exceed {limits.title_max_length} characters",
                ErrorCode.FIELD_TOO_LONG,
            ))

        if not body:
            problems.append(("body", "Body is required", ErrorCode.BODY_REQUIRED))
        elif len(body) > limits.body_max_length:
            problems.append((
                "body",
                f"Body cannot exceed {limits.body_max_length} characters",
                ErrorCode.FIELD_TOO_LONG,
            ))

        if any(len(t) > limits.tag_max_length for t in form.tags):
            problems.append((
                "tags",
                f"Tags cannot exceed {limits.tag_max_length} characters",
                ErrorCode.FIELD_TOO_LONG,
            ))

        if not problems:
            return

        field_name, message, code = problems[0]
        if len(problems) > 1:
            message, code = "Invalid data. Check the highlighted fields.", ErrorCode.VALIDATION_FAILED
        raise NoteValidationError(
            message,
            field=field_name,
            code=code,
            errors={name: text for name, text, _ in problems},
        )

    # persistence

    async def submit(self) -> Note:
        if self.state is SessionState.SUBMITTING:
            raise InvalidStateError("A save is already in progress", state=self.state.value)
        if self.state is not SessionState.OPEN:
            raise InvalidStateError("Session is not open", state=self.state.value)

        self.validate()
        if (
            self.settings.strict_lock_on_submit
            and self.lock is not None
            and self.lock.state is LockState.LAPSED
        ):
            raise LockExpiredError(self.note.id, message="The edit lock has expired; reopen the note to save")

        self.state = SessionState.SUBMITTING
        try:
            if self.note is None:
                return await self._create()
            return await self._update()
        finally:
            await self._release_lock()
            self.state = SessionState.CLOSED

    async def update_sharing(self, block: PermissionBlock) -> Note:
        """Owner-only sharing change outside a content edit."""
        if self.note is None:
            raise InvalidStateError("The note must be saved before it can be shared")
        permissions.ensure_can_edit_permissions(self.note, self.actor)
        if not block.differs_from(self.note):
            return self.note

        note = await self.client.update_permissions(self.note.id, block)
        self.note = self.cache.merge(note)
        if self.form is not None:
            self.form.access_tier = self.note.access_tier
            self.form.readers = self.note.readers
            self.form.writers = self.note.writers
        logger.info(
            "Sharing updated",
            extra={"note_id": self.note.id, "access_tier": self.note.access_tier.value},
        )
        return self.note

    async def cancel(self) -> None:
        """Abandon the edit; local changes are discarded."""
        if self.state is SessionState.CLOSED:
            return
        await self._release_lock()
        self.state = SessionState.CLOSED
        self.form = None

    async def close(self) -> None:
        await self.cancel()
        if self.lock is not None:
            await self.lock.drain()

    async def _create(self) -> Note:
        form = self.form
        request = NoteCreate(
            title=form.title.strip(),
            body=form.body.strip(),
            tags=list(form.tags),
            collections=sorted(form.collections),
            permissions=form.permission_block(),
        )
        note = await self.client.create_note(request)
        self.note = self.saved_note = self.cache.merge(note)
        return self.saved_note

    async def _update(self) -> Note:
        form = self.form
        current = self.note
        block = form.permission_block()

        send_permissions = block.differs_from(current)
        if send_permissions and not self.can_edit_permissions:
            self._warn("Sharing changes were ignored: only the owner can change them")
            send_permissions = False

        request = NoteUpdate(
            id=current.id,
            title=form.title.strip(),
            body=form.body.strip(),
            tags=list(form.tags),
            collections=sorted(form.collections),
            base_version_number=current.version_number,
        )
        saved = await self.client.update_note(current.id, request)
        self.saved_note = self.cache.merge(saved)

        if send_permissions:
            try:
                saved = await self.client.update_permissions(current.id, block)
            except NoteCollabError as e:
                e.details["content_saved"] = True
                logger.warning(
                    "Sharing update failed after content was saved",
                    extra={"note_id": current.id, "error": e.code.name},
                )
                raise
            self.saved_note = self.cache.merge(saved)

        self.note = self.saved_note
        return self.saved_note

    async def _release_lock(self) -> None:
        if self.lock is not None:
            await self.lock.release()

    def _on_lock_lost(self, error: LockExpiredError) -> None:
        self._warn(error.message)

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message, extra={"note_id": self.note.id if self.note else None})

    def _require_form(self) -> EditFormState:
        if self.form is None:
            raise InvalidStateError("Session is not open", state=self.state.value)
        return self.form
