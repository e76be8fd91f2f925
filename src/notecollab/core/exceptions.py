"""Exception hierarchy for the NoteCollab client.

Every failure surfaced to callers carries a machine-readable error code and a
human-readable message suitable for showing to the user verbatim.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Error codes for machine-readable error identification."""

    # Lock errors (1xxx)
    LOCK_CONFLICT = 1001
    LOCK_EXPIRED = 1002

    # Permission errors (2xxx)
    PERMISSION_DENIED = 2001
    AUTHENTICATION_FAILED = 2002

    # Validation errors (3xxx)
    VALIDATION_FAILED = 3001
    TITLE_REQUIRED = 3002
    BODY_REQUIRED = 3003
    FIELD_TOO_LONG = 3004

    # Remote state errors (4xxx)
    NOT_FOUND = 4001
    CONFLICT = 4002

    # Transport / service errors (5xxx)
    TRANSPORT_FAILED = 5001
    SERVICE_ERROR = 5002
    INVALID_RESPONSE = 5003

    # Client state machine misuse (6xxx)
    INVALID_STATE = 6001


class NoteCollabError(Exception):
    """Base exception for all NoteCollab client errors.

    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """

    retryable = False

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details
        }

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"[{self.code.name}] {self.message} ({detail_str})"
        return f"[{self.code.name}] {self.message}"


class LockConflictError(NoteCollabError):
    """Raised when another actor already holds a non-expired lock."""

    def __init__(self, note_id: int, holder: Optional[str] = None, message: Optional[str] = None):
        details: Dict[str, Any] = {"note_id": note_id}
        if holder:
            details["holder"] = holder
        super().__init__(
            message or (
                f"Note is already being edited by {holder}" if holder
                else "Note is already being edited by another user"
            ),
            code=ErrorCode.LOCK_CONFLICT,
            details=details,
        )
        self.note_id = note_id
        self.holder = holder


class LockExpiredError(NoteCollabError):
    """Raised when a held lock could not be renewed or is no longer valid."""

    def __init__(self, note_id: int, message: Optional[str] = None):
        super().__init__(
            message or "Edit lock expired; saving may be rejected by the server",
            code=ErrorCode.LOCK_EXPIRED,
            details={"note_id": note_id},
        )
        self.note_id = note_id


class PermissionDeniedError(NoteCollabError):
    """Raised when the actor may not perform the requested change."""

    def __init__(self, message: str = "You do not have permission to perform this operation",
                 note_id: Optional[int] = None, actor: Optional[str] = None):
        details: Dict[str, Any] = {}
        if note_id is not None:
            details["note_id"] = note_id
        if actor:
            details["actor"] = actor
        super().__init__(message, code=ErrorCode.PERMISSION_DENIED, details=details)
        self.note_id = note_id
        self.actor = actor


class AuthenticationError(NoteCollabError):
    """Raised when the bearer credential is missing, invalid or expired."""

    def __init__(self, message: str = "Not authorized. Please sign in again."):
        super().__init__(message, code=ErrorCode.AUTHENTICATION_FAILED)


class NoteValidationError(NoteCollabError):
    """Raised when note data fails validation."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        errors: Optional[Dict[str, Any]] = None
    ):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)[:100]  # Truncate for safety
        if errors:
            details["errors"] = errors

        super().__init__(message, code=code, details=details)
        self.field = field
        self.value = value


class NotFoundError(NoteCollabError):
    """Raised when the note (or a version of it) does not exist."""

    def __init__(self, message: str = "Note not found", note_id: Optional[int] = None):
        details = {"note_id": note_id} if note_id is not None else {}
        super().__init__(message, code=ErrorCode.NOT_FOUND, details=details)
        self.note_id = note_id


class ConflictError(NoteCollabError):
    """Raised when the server signals a concurrent modification."""

    def __init__(self, message: str, note_id: Optional[int] = None):
        details = {"note_id": note_id} if note_id is not None else {}
        super().__init__(message, code=ErrorCode.CONFLICT, details=details)
        self.note_id = note_id


class ServiceError(NoteCollabError):
    """Raised for server-side failures and unexpected statuses."""

    def __init__(self, message: str = "Internal server error. Please try again later.",
                 status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, code=ErrorCode.SERVICE_ERROR, details=details)
        self.status_code = status_code


class TransportError(NoteCollabError):
    """Raised when the note service cannot be reached."""

    retryable = True

    def __init__(self, message: str = "Unable to reach the note service",
                 original_error: Optional[Exception] = None):
        details = {}
        if original_error:
            details["original_error"] = str(original_error)[:200]
        super().__init__(message, code=ErrorCode.TRANSPORT_FAILED, details=details)
        self.original_error = original_error


class InvalidResponseError(NoteCollabError):
    """Raised when a response body does not match any known contract."""

    def __init__(self, message: str = "Unexpected response format from the note service"):
        super().__init__(message, code=ErrorCode.INVALID_RESPONSE)


class InvalidStateError(NoteCollabError):
    """Raised when a lock controller or edit session is driven out of order."""

    def __init__(self, message: str, state: Optional[str] = None):
        details = {"state": state} if state else {}
        super().__init__(message, code=ErrorCode.INVALID_STATE, details=details)
        self.state = state
