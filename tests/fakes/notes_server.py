"""In-memory FastAPI stand-in for the note service.

Implements the lock, permission, version and note endpoints the client
consumes, with an injectable clock so lock expiry can be driven by tests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.responses import JSONResponse
from jose import JWTError, jwt

SECRET_KEY = "test-secret-key"
ALGORITHM = "HS256"
LOCK_TTL_SECONDS = 120


def make_token(username: str) -> str:
    return jwt.encode({"sub": username, "type": "access"}, SECRET_KEY, algorithm=ALGORITHM)


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class StoredNote:
    id: int
    title: str
    body: str
    author: str
    tags: Set[str] = field(default_factory=set)
    collections: Set[str] = field(default_factory=set)
    access_tier: str = "PRIVATE"
    readers: Set[str] = field(default_factory=set)
    writers: Set[str] = field(default_factory=set)
    version_number: int = 1
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class StoredLock:
    holder: str
    expires_at: datetime


class NoteStore:
    """State behind the fake service; tests seed and inspect it directly."""

    def __init__(self, clock: Optional[FakeClock] = None, ttl_seconds: float = LOCK_TTL_SECONDS):
        self.clock = clock or FakeClock()
        self.ttl_seconds = ttl_seconds
        self.notes: Dict[int, StoredNote] = {}
        self.versions: Dict[int, List[dict]] = {}
        self.locks: Dict[int, StoredLock] = {}
        self.faults: Dict[str, int] = {}
        self.calls: List[str] = []
        self._next_id = 1

    def seed_note(self, note_id: Optional[int] = None, *, versions: int = 1, **fields) -> StoredNote:
        """Create a note already carrying ``versions`` history entries."""
        note_id = note_id or self._next_id
        self._next_id = max(self._next_id, note_id + 1)
        fields.setdefault("title", "Title")
        fields.setdefault("body", "Body")
        note = StoredNote(id=note_id, created_at=self.clock.now(), **fields)
        self.notes[note_id] = note
        self.versions[note_id] = []
        original_title, original_body = note.title, note.body
        for n in range(1, versions + 1):
            note.title = original_title if n == versions else f"{original_title} v{n}"
            note.body = original_body if n == versions else f"{original_body} v{n}"
            note.version_number = n
            self._record_version(note, note.author, "Created" if n == 1 else "Edited")
        return note

    def lock_for(self, note_id: int) -> Optional[StoredLock]:
        lock = self.locks.get(note_id)
        if lock is not None and lock.expires_at <= self.clock.now():
            del self.locks[note_id]
            return None
        return lock

    def check_fault(self, operation: str) -> None:
        self.calls.append(operation)
        status = self.faults.pop(operation, None)
        if status is not None:
            raise HTTPException(status_code=status, detail=f"Injected failure in {operation}")

    def create(self, author: str, payload: dict) -> StoredNote:
        permissions = payload.get("permissions") or {}
        note = StoredNote(
            id=self._next_id,
            title=payload["title"],
            body=payload["body"],
            author=author,
            tags=set(payload.get("tags") or []),
            collections=set(payload.get("collections") or []),
            access_tier=permissions.get("accessTier", "PRIVATE"),
            readers=set(permissions.get("readers") or []),
            writers=set(permissions.get("writers") or []),
            created_at=self.clock.now(),
        )
        self._next_id += 1
        self.notes[note.id] = note
        self.versions[note.id] = []
        self._record_version(note, author, "Created")
        return note

    def bump(self, note: StoredNote, username: str, description: str) -> None:
        note.version_number += 1
        note.updated_at = self.clock.now()
        self._record_version(note, username, description)

    def _record_version(self, note: StoredNote, username: str, description: str) -> None:
        self.versions[note.id].append({
            "id": len(self.versions[note.id]) + 1000 * note.id,
            "versionNumber": note.version_number,
            "title": note.title,
            "body": note.body,
            "createdBy": username,
            "createdAt": self.clock.now().isoformat(),
            "changeDescription": description,
        })


def can_read(note: StoredNote, username: str) -> bool:
    return (
        note.author == username
        or (note.access_tier != "PRIVATE" and username in note.readers | note.writers)
    )


def can_write(note: StoredNote, username: str) -> bool:
    return note.author == username or (note.access_tier == "SHARED_WRITE" and username in note.writers)


def note_view(note: StoredNote, username: str, lock: Optional[StoredLock]) -> dict:
    view = {
        "id": note.id,
        "title": note.title,
        "body": note.body,
        "author": note.author,
        "tags": sorted(note.tags),
        "collections": sorted(note.collections),
        "accessTier": note.access_tier,
        "readers": sorted(note.readers),
        "writers": sorted(note.writers),
        "versionNumber": note.version_number,
        "canEdit": can_write(note, username),
        "canDelete": note.author == username,
        "createdAt": note.created_at.isoformat() if note.created_at else None,
        "updatedAt": note.updated_at.isoformat() if note.updated_at else None,
    }
    if lock is not None:
        view["lock"] = {"lockedByUser": lock.holder, "lockExpiresAt": lock.expires_at.isoformat()}
    return view


def _conflict(message: str, locked_by: Optional[str] = None) -> JSONResponse:
    body = {"success": False, "message": message}
    if locked_by:
        body["lockedBy"] = locked_by
    return JSONResponse(status_code=409, content=body)


def create_app(store: NoteStore) -> FastAPI:
    app = FastAPI(title="Fake note service")

    async def current_user(authorization: Optional[str] = Header(default=None)) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")
        try:
            claims = jwt.decode(authorization[7:], SECRET_KEY, algorithms=[ALGORITHM])
        except JWTError:
            raise HTTPException(status_code=401, detail="Invalid token")
        return claims["sub"]

    def readable(note_id: int, username: str) -> StoredNote:
        note = store.notes.get(note_id)
        if note is None:
            raise HTTPException(status_code=404, detail="Note not found")
        if not can_read(note, username):
            raise HTTPException(status_code=403, detail="You cannot view this note")
        return note

    def writable(note_id: int, username: str) -> StoredNote:
        note = readable(note_id, username)
        if not can_write(note, username):
            raise HTTPException(status_code=403, detail="You cannot modify this note")
        return note

    @app.get("/api/notes/stats")
    async def stats(username: str = Depends(current_user)):
        visible = [n for n in store.notes.values() if can_read(n, username)]
        return {
            "success": True,
            "stats": {
                "allTags": sorted({t for n in visible for t in n.tags}),
                "allCollections": sorted({c for n in visible for c in n.collections}),
            },
        }

    @app.post("/api/notes", status_code=201)
    async def create_note(payload: dict, username: str = Depends(current_user)):
        store.check_fault("create_note")
        note = store.create(username, payload)
        return {"success": True, "note": note_view(note, username, None)}

    @app.get("/api/notes/{note_id}")
    async def get_note(note_id: int, username: str = Depends(current_user)):
        store.check_fault("get_note")
        note = readable(note_id, username)
        return {"success": True, "data": note_view(note, username, store.lock_for(note_id))}

    @app.put("/api/notes/{note_id}")
    async def update_note(note_id: int, payload: dict, username: str = Depends(current_user)):
        store.check_fault("update_note")
        note = writable(note_id, username)
        lock = store.lock_for(note_id)
        if lock is not None and lock.holder != username:
            return _conflict(f"Note is being edited by {lock.holder}", lock.holder)
        base = payload.get("baseVersionNumber")
        if base is not None and base != note.version_number:
            return _conflict("The note was modified by someone else. Reload it and try again.")

        note.title = payload["title"]
        note.body = payload["body"]
        note.tags = set(payload.get("tags") or [])
        note.collections = set(payload.get("collections") or [])
        store.bump(note, username, "Edited")
        return {"success": True, "data": note_view(note, username, lock)}

    @app.put("/api/notes/{note_id}/permissions")
    async def update_permissions(note_id: int, payload: dict, username: str = Depends(current_user)):
        store.check_fault("update_permissions")
        note = readable(note_id, username)
        if note.author != username:
            raise HTTPException(status_code=403, detail="Only the owner can change sharing")
        note.access_tier = payload.get("accessTier", "PRIVATE")
        note.readers = set(payload.get("readers") or [])
        note.writers = set(payload.get("writers") or [])
        if note.access_tier == "PRIVATE":
            note.readers, note.writers = set(), set()
        return note_view(note, username, store.lock_for(note_id))

    @app.post("/api/notes/{note_id}/lock")
    async def acquire_lock(note_id: int, username: str = Depends(current_user)):
        store.check_fault("acquire_lock")
        writable(note_id, username)
        lock = store.lock_for(note_id)
        if lock is not None and lock.holder != username:
            return _conflict(f"Note is being edited by {lock.holder}", lock.holder)
        store.locks[note_id] = StoredLock(
            holder=username,
            expires_at=store.clock.now() + timedelta(seconds=store.ttl_seconds),
        )
        return {"success": True, "lockedBy": username, "message": "Lock acquired"}

    @app.put("/api/notes/{note_id}/lock/refresh")
    async def refresh_lock(note_id: int, username: str = Depends(current_user)):
        store.check_fault("refresh_lock")
        lock = store.lock_for(note_id)
        if lock is None or lock.holder != username:
            return _conflict("Lock expired or not held")
        lock.expires_at = store.clock.now() + timedelta(seconds=store.ttl_seconds)
        return {"success": True, "message": "Lock renewed"}

    @app.delete("/api/notes/{note_id}/lock")
    async def release_lock(note_id: int, username: str = Depends(current_user)):
        store.check_fault("release_lock")
        lock = store.lock_for(note_id)
        if lock is not None and lock.holder == username:
            del store.locks[note_id]
        return {"success": True}

    @app.get("/api/notes/{note_id}/lock-status")
    async def lock_status(note_id: int, username: str = Depends(current_user)):
        note = readable(note_id, username)
        lock = store.lock_for(note_id)
        return {
            "success": True,
            "data": {
                "locked": lock is not None,
                "lockedBy": lock.holder if lock else None,
                "lockExpiresAt": lock.expires_at.isoformat() if lock else None,
                "canEdit": can_write(note, username) and (lock is None or lock.holder == username),
            },
        }

    @app.get("/api/notes/{note_id}/versions")
    async def list_versions(note_id: int, username: str = Depends(current_user)):
        store.check_fault("list_versions")
        readable(note_id, username)
        return {"success": True, "versions": list(reversed(store.versions[note_id]))}

    @app.get("/api/notes/{note_id}/versions/{version_number}")
    async def get_version(note_id: int, version_number: int, username: str = Depends(current_user)):
        readable(note_id, username)
        for version in store.versions[note_id]:
            if version["versionNumber"] == version_number:
                return {"success": True, "data": version}
        raise HTTPException(status_code=404, detail="Version not found")

    @app.post("/api/notes/{note_id}/restore")
    async def restore(note_id: int, payload: dict, username: str = Depends(current_user)):
        store.check_fault("restore")
        note = writable(note_id, username)
        wanted = payload.get("versionNumber")
        source = next((v for v in store.versions[note_id] if v["versionNumber"] == wanted), None)
        if source is None:
            raise HTTPException(status_code=404, detail="Version not found")
        note.title, note.body = source["title"], source["body"]
        store.bump(note, username, f"Restored from version {wanted}")
        return {"success": True, "note": note_view(note, username, store.lock_for(note_id))}

    return app
