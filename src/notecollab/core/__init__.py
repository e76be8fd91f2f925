"""Core client: HTTP client, schemas, errors and edit-controller services."""

from .auth import Actor
from .client import NotesApiClient

__all__ = ["Actor", "NotesApiClient"]
