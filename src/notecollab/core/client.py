"""Async HTTP client for the note service."""

from typing import Any, List, Optional

import httpx
from pydantic import ValidationError

from ..config import Settings, get_settings
from .adapters import normalize_version_list, unwrap_note, unwrap_stats, unwrap_version
from .auth import Actor
from .exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidResponseError,
    LockConflictError,
    LockExpiredError,
    NoteCollabError,
    NotFoundError,
    NoteValidationError,
    PermissionDeniedError,
    ServiceError,
    TransportError,
)
from .logging import HttpLoggingHooks, get_logger
from .schemas import (
    ErrorResponse,
    LockResponse,
    LockStatus,
    Note,
    NoteCreate,
    NoteUpdate,
    NoteVersion,
    PermissionBlock,
    RestoreVersionRequest,
    UserStats,
)

logger = get_logger("client")


class NotesApiClient:
    """Thin typed wrapper over the note service endpoints.

    Every non-2xx response is translated into a :class:`NoteCollabError`
    subclass; transport failures become :class:`TransportError`.
    """

    def __init__(
        self,
        actor: Actor,
        base_url: Optional[str] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.actor = actor
        self._hooks = HttpLoggingHooks()
        self._http = httpx.AsyncClient(
            base_url=base_url or self.settings.api_base_url,
            headers={"Accept": "application/json", **actor.auth_headers()},
            timeout=timeout or self.settings.request_timeout_seconds,
            transport=transport,
            event_hooks=self._hooks.as_event_hooks(),
        )

    async def __aenter__(self) -> "NotesApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # notes

    async def get_note(self, note_id: int) -> Note:
        payload = await self._request("GET", f"/notes/{note_id}", note_id=note_id)
        return unwrap_note(payload)

    async def create_note(self, request: NoteCreate) -> Note:
        payload = await self._request("POST", "/notes", json=request.to_wire())
        note = unwrap_note(payload)
        logger.info("Note created", extra={"note_id": note.id})
        return note

    async def update_note(self, note_id: int, request: NoteUpdate) -> Note:
        payload = await self._request(
            "PUT", f"/notes/{note_id}", json=request.to_wire(), note_id=note_id
        )
        note = unwrap_note(payload)
        logger.info("Note updated", extra={"note_id": note_id, "version": note.version_number})
        return note

    async def update_permissions(self, note_id: int, block: PermissionBlock) -> Note:
        payload = await self._request(
            "PUT", f"/notes/{note_id}/permissions", json=block.to_wire(), note_id=note_id
        )
        return unwrap_note(payload)

    async def get_user_stats(self) -> UserStats:
        payload = await self._request("GET", "/notes/stats")
        return unwrap_stats(payload)

    # locks

    async def acquire_lock(self, note_id: int) -> LockResponse:
        try:
            payload = await self._request("POST", f"/notes/{note_id}/lock", note_id=note_id)
        except ConflictError as e:
            raise LockConflictError(
                note_id, holder=e.details.get("locked_by"), message=e.message
            ) from e

        response = self._parse(LockResponse, payload)
        if not response.success:
            raise LockConflictError(note_id, holder=response.locked_by, message=response.message)
        return response

    async def refresh_lock(self, note_id: int) -> LockResponse:
        try:
            payload = await self._request("PUT", f"/notes/{note_id}/lock/refresh", note_id=note_id)
        except (ConflictError, NotFoundError) as e:
            raise LockExpiredError(note_id, message=e.message) from e
        return self._parse(LockResponse, payload)

    async def release_lock(self, note_id: int) -> bool:
        payload = await self._request("DELETE", f"/notes/{note_id}/lock", note_id=note_id)
        if payload is None:
            return True
        return self._parse(LockResponse, payload).success

    async def get_lock_status(self, note_id: int) -> LockStatus:
        payload = await self._request("GET", f"/notes/{note_id}/lock-status", note_id=note_id)
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            payload = payload["data"]
        return self._parse(LockStatus, payload)

    # versions

    async def list_versions(self, note_id: int) -> List[NoteVersion]:
        payload = await self._request("GET", f"/notes/{note_id}/versions", note_id=note_id)
        return normalize_version_list(payload)

    async def get_version(self, note_id: int, version_number: int) -> NoteVersion:
        payload = await self._request(
            "GET", f"/notes/{note_id}/versions/{version_number}", note_id=note_id
        )
        return unwrap_version(payload)

    async def restore_version(self, note_id: int, version_number: int) -> Note:
        request = RestoreVersionRequest(version_number=version_number)
        payload = await self._request(
            "POST", f"/notes/{note_id}/restore", json=request.to_wire(), note_id=note_id
        )
        return unwrap_note(payload)

    # plumbing

    async def _request(
        self, method: str, path: str, *, json: Any = None, note_id: Optional[int] = None
    ) -> Any:
        try:
            response = await self._http.request(method, path, json=json)
        except httpx.TimeoutException as e:
            raise TransportError("The note service did not respond in time", original_error=e) from e
        except httpx.HTTPError as e:
            raise TransportError(original_error=e) from e

        if response.is_success:
            if not response.content:
                return None
            try:
                return response.json()
            except ValueError as e:
                raise InvalidResponseError("Response body is not valid JSON") from e

        raise self._error_for(response, note_id)

    def _error_for(self, response: httpx.Response, note_id: Optional[int]) -> NoteCollabError:
        """Map an error response onto the client's exception taxonomy."""
        body = self._error_body(response)
        message = body.message
        status = response.status_code

        if status == 401:
            return AuthenticationError(message or "Not authorized. Please sign in again.")
        if status == 403:
            return PermissionDeniedError(
                message or "You do not have permission to perform this operation",
                note_id=note_id,
                actor=self.actor.username,
            )
        if status == 404:
            return NotFoundError(message or "Note not found", note_id=note_id)
        if status == 409:
            error = ConflictError(message or "The note was modified by someone else", note_id=note_id)
            if body.locked_by:
                error.details["locked_by"] = body.locked_by
            return error
        if status in (400, 422):
            return NoteValidationError(
                message or "Invalid data. Check the submitted fields.", errors=body.errors
            )
        if status >= 500:
            return ServiceError(
                message or "Internal server error. Please try again later.", status_code=status
            )
        return ServiceError(message or f"Server error: {status}", status_code=status)

    @staticmethod
    def _error_body(response: httpx.Response) -> ErrorResponse:
        try:
            raw = response.json()
        except ValueError:
            return ErrorResponse()
        if not isinstance(raw, dict):
            return ErrorResponse()
        # FastAPI style {"detail": "..."} bodies
        if "message" not in raw and isinstance(raw.get("detail"), str):
            raw = {**raw, "message": raw["detail"]}
        try:
            return ErrorResponse.model_validate(raw)
        except ValidationError:
            return ErrorResponse()

    @staticmethod
    def _parse(model, payload: Any):
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise InvalidResponseError(f"Malformed {model.__name__} response") from e
