"""Response-shape adapters.

The note service has shipped several envelopes over time (bare objects,
``{"note": ...}``, ``{"data": ...}``, bare arrays, ``{"versions": [...]}`` ...).
All of that sniffing is confined to this module; everything else in the client
works with the typed schemas only.
"""

from typing import Any, List

from pydantic import ValidationError

from .exceptions import InvalidResponseError, ServiceError
from .logging import get_logger
from .schemas import Note, NoteVersion, UserStats

logger = get_logger("adapters")

NOTE_ENVELOPE_KEYS = ("data", "note")
VERSION_LIST_KEYS = ("versions", "data", "result")


def _raise_if_unsuccessful(payload: Any) -> None:
    if isinstance(payload, dict) and payload.get("success") is False:
        raise ServiceError(payload.get("message") or "The note service reported a failure")


def unwrap_note(payload: Any) -> Note:
    """Return the note carried by a response, bare or wrapped under data/note."""
    _raise_if_unsuccessful(payload)
    if not isinstance(payload, dict):
        raise InvalidResponseError("Expected a note object in the response")

    raw = payload
    for key in NOTE_ENVELOPE_KEYS:
        if isinstance(payload.get(key), dict):
            raw = payload[key]
            break

    try:
        return Note.model_validate(raw)
    except ValidationError as e:
        raise InvalidResponseError(f"Malformed note in response: {e.error_count()} error(s)") from e


def normalize_version_list(payload: Any) -> List[NoteVersion]:
    """Extract a version list from any of the supported envelopes.

    Entries without a numeric ``versionNumber`` are dropped rather than failing
    the whole list.
    """
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        _raise_if_unsuccessful(payload)
        entries = next(
            (payload[key] for key in VERSION_LIST_KEYS if isinstance(payload.get(key), list)),
            None,
        )
        if entries is None:
            raise InvalidResponseError("Invalid version list format")
    else:
        raise InvalidResponseError("Invalid version list format")

    versions: List[NoteVersion] = []
    for entry in entries:
        if not _has_numeric_version(entry):
            continue
        try:
            versions.append(NoteVersion.model_validate(entry))
        except ValidationError:
            continue

    dropped = len(entries) - len(versions)
    if dropped:
        logger.warning("Discarded malformed version entries", extra={"dropped": dropped})
    return versions


def unwrap_version(payload: Any) -> NoteVersion:
    """Return a single version, bare or wrapped under data/version."""
    _raise_if_unsuccessful(payload)
    raw = payload
    if isinstance(payload, dict):
        for key in ("data", "version"):
            if isinstance(payload.get(key), dict):
                raw = payload[key]
                break
    if not _has_numeric_version(raw):
        raise InvalidResponseError("Expected a version object in the response")
    try:
        return NoteVersion.model_validate(raw)
    except ValidationError as e:
        raise InvalidResponseError("Malformed version in response") from e


def unwrap_stats(payload: Any) -> UserStats:
    _raise_if_unsuccessful(payload)
    if not isinstance(payload, dict):
        raise InvalidResponseError("Expected a statistics object in the response")
    raw = payload.get("stats") if isinstance(payload.get("stats"), dict) else payload
    return UserStats.model_validate(raw)


def _has_numeric_version(entry: Any) -> bool:
    if not isinstance(entry, dict):
        return False
    value = entry.get("versionNumber", entry.get("version_number"))
    # bool is an int subclass; a flag is not a version number
    return isinstance(value, int) and not isinstance(value, bool)
