"""Edit-lock lifecycle for one editing attempt on one note."""

import asyncio
import contextlib
import inspect
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Optional, Set

from ...config import Settings, get_settings
from ..client import NotesApiClient
from ..exceptions import (
    AuthenticationError,
    InvalidStateError,
    LockConflictError,
    LockExpiredError,
    NoteCollabError,
    PermissionDeniedError,
)
from ..logging import get_logger
from ..schemas import LockStatus

logger = get_logger("locks")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LockState(str, Enum):
    IDLE = "IDLE"
    ACQUIRING = "ACQUIRING"
    HELD = "HELD"
    RENEWING = "RENEWING"
    RELEASED = "RELEASED"
    FAILED = "FAILED"
    # renewal was refused: no longer locked, editing continues at the user's risk
    LAPSED = "LAPSED"


@dataclass
class EditLock:
    note_id: int
    holder: str
    acquired_at: datetime
    ttl_seconds: float
    renewed: int = 0
    last_renewed_at: Optional[datetime] = None

    @property
    def expires_at(self) -> datetime:
        """Local estimate; the server clock is authoritative."""
        return (self.last_renewed_at or self.acquired_at) + timedelta(seconds=self.ttl_seconds)


@dataclass
class _Tasks:
    renewal: Optional[asyncio.Task] = None
    releases: Set[asyncio.Task] = field(default_factory=set)


class EditLockController:
    """Acquires, renews and releases the server-side edit lock of a note.

    A controller is single use: once it has failed or been released, a new
    controller is needed for a new editing attempt. Every release bumps a
    generation counter, and responses that come back for an older generation
    are ignored, so a late renewal can never bring a released lock back.
    """

    def __init__(
        self,
        client: NotesApiClient,
        note_id: int,
        *,
        settings: Optional[Settings] = None,
        on_lock_lost: Optional[Callable[[LockExpiredError], Any]] = None,
    ):
        self.client = client
        self.note_id = note_id
        self.settings = settings or get_settings()
        self.ttl_seconds = self.settings.lock_ttl_seconds
        self.renewal_seconds = self.settings.lock_renewal_seconds
        self.on_lock_lost = on_lock_lost

        self.state = LockState.IDLE
        self.lock: Optional[EditLock] = None
        self.error: Optional[NoteCollabError] = None
        self.warning: Optional[str] = None

        self._generation = 0
        self._missed_renewals = 0
        self._tasks = _Tasks()

    async def __aenter__(self) -> "EditLockController":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()

    @property
    def is_held(self) -> bool:
        return self.state in (LockState.HELD, LockState.RENEWING)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def renewal_task(self) -> Optional[asyncio.Task]:
        return self._tasks.renewal

    async def acquire(self) -> EditLock:
        if self.state is not LockState.IDLE:
            raise InvalidStateError(
                "A new editing attempt needs a new lock controller", state=self.state.value
            )

        self.state = LockState.ACQUIRING
        generation = self._generation
        try:
            response = await self.client.acquire_lock(self.note_id)
        except LockConflictError as e:
            if generation == self._generation:
                self.state = LockState.FAILED
                self.error = e
            logger.info(
                "Edit lock refused",
                extra={"note_id": self.note_id, "holder": e.holder},
            )
            raise
        except NoteCollabError as e:
            if generation == self._generation:
                self.state = LockState.FAILED
                self.error = e
            logger.warning(
                "Edit lock acquisition failed",
                extra={"note_id": self.note_id, "error": e.code.name},
            )
            raise
        except asyncio.CancelledError:
            # the server may have granted the lock before we stopped listening
            if generation == self._generation:
                self._generation += 1
                self.state = LockState.RELEASED
                self._spawn_release()
            raise

        if generation != self._generation:
            logger.info("Discarding lock granted after release", extra={"note_id": self.note_id})
            self._spawn_release()
            raise InvalidStateError("Lock acquisition was cancelled", state=self.state.value)

        now = _utc_now()
        self.lock = EditLock(
            note_id=self.note_id,
            holder=response.locked_by or self.client.actor.username,
            acquired_at=now,
            ttl_seconds=self.ttl_seconds,
            last_renewed_at=now,
        )
        self.state = LockState.HELD
        self._tasks.renewal = asyncio.create_task(
            self._renewal_loop(generation), name=f"lock-renewal-{self.note_id}"
        )
        logger.info(
            "Edit lock acquired",
            extra={"note_id": self.note_id, "holder": self.lock.holder, "ttl": self.ttl_seconds},
        )
        return self.lock

    async def renew_once(self) -> bool:
        """One renewal round trip. Returns True if the lock is still held."""
        if self.state is not LockState.HELD:
            return False

        generation = self._generation
        self.state = LockState.RENEWING
        try:
            response = await self.client.refresh_lock(self.note_id)
        except (LockExpiredError, PermissionDeniedError, AuthenticationError) as e:
            if generation == self._generation:
                await self._mark_lapsed(
                    e if isinstance(e, LockExpiredError)
                    else LockExpiredError(self.note_id, message=e.message)
                )
            return False
        except NoteCollabError as e:
            if generation != self._generation:
                return False
            return await self._record_missed_renewal(e)

        if generation != self._generation:
            logger.debug("Discarding late renewal response", extra={"note_id": self.note_id})
            return False

        if not response.success:
            await self._mark_lapsed(LockExpiredError(self.note_id, message=response.message))
            return False

        self._missed_renewals = 0
        self.lock.renewed += 1
        self.lock.last_renewed_at = _utc_now()
        self.state = LockState.HELD
        logger.debug(
            "Edit lock renewed",
            extra={"note_id": self.note_id, "renewed": self.lock.renewed},
        )
        return True

    async def release(self) -> None:
        """Give the lock back without waiting for the server to confirm."""
        if self.state in (LockState.RELEASED, LockState.FAILED):
            return

        had_claim = self.state is not LockState.IDLE
        self._generation += 1
        self.state = LockState.RELEASED
        await self._cancel_renewal()

        # a pending acquisition spawns its own release if the server grants it late
        if had_claim and self.lock is not None:
            self._spawn_release()
            logger.info("Edit lock released", extra={"note_id": self.note_id})

    async def drain(self) -> None:
        """Wait for background release calls to finish."""
        if self._tasks.releases:
            await asyncio.gather(*list(self._tasks.releases), return_exceptions=True)

    async def status(self) -> LockStatus:
        return await self.client.get_lock_status(self.note_id)

    async def _renewal_loop(self, generation: int) -> None:
        while generation == self._generation and self.state is LockState.HELD:
            await asyncio.sleep(self.renewal_seconds)
            if generation != self._generation:
                break
            await self.renew_once()

    async def _cancel_renewal(self) -> None:
        task = self._tasks.renewal
        self._tasks.renewal = None
        if task is None or task.done():
            return
        task.cancel()
        if task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _record_missed_renewal(self, error: NoteCollabError) -> bool:
        self._missed_renewals += 1
        if self._missed_renewals > self.settings.lock_max_missed_renewals:
            await self._mark_lapsed(LockExpiredError(
                self.note_id,
                message="Lost contact with the note service; the edit lock may have expired",
            ))
            return False

        self.state = LockState.HELD
        logger.warning(
            "Edit lock renewal missed",
            extra={"note_id": self.note_id, "missed": self._missed_renewals, "error": error.code.name},
        )
        return True

    async def _mark_lapsed(self, error: LockExpiredError) -> None:
        self.state = LockState.LAPSED
        self.error = error
        self.warning = error.message
        logger.warning("Edit lock lapsed", extra={"note_id": self.note_id, "reason": error.message})
        if self.on_lock_lost is None:
            return
        # sync or async callbacks; a failing callback must not stop the renewal task
        try:
            result = self.on_lock_lost(error)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Lock lost callback failed", extra={"note_id": self.note_id})

    def _spawn_release(self) -> None:
        task = asyncio.create_task(self._send_release(), name=f"lock-release-{self.note_id}")
        self._tasks.releases.add(task)
        task.add_done_callback(self._tasks.releases.discard)

    async def _send_release(self) -> None:
        try:
            await self.client.release_lock(self.note_id)
        except NoteCollabError as e:
            logger.warning(
                "Edit lock release failed",
                extra={"note_id": self.note_id, "error": e.code.name, "reason": e.message},
            )
