"""Shared pytest fixtures: settings, actors, and an in-memory note service."""

import logging

import httpx
import pytest

from fakes.notes_server import FakeClock, NoteStore, create_app, make_token
from notecollab.config import Settings
from notecollab.core.auth import Actor
from notecollab.core.client import NotesApiClient
from notecollab.core.services.note_cache import NoteCache

BASE_URL = "http://testserver/api"

# keep request/response debug logs out of test output
logging.getLogger("notecollab.http").setLevel(logging.WARNING)


@pytest.fixture
def test_settings():
    """Settings with a short lock cycle so renewal can be observed quickly."""
    return Settings(
        api_base_url=BASE_URL,
        lock_ttl_seconds=1.0,
        lock_renewal_seconds=0.05,
        lock_max_missed_renewals=1,
        debug=True,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return NoteStore(clock=clock)


@pytest.fixture
def app(store):
    return create_app(store)


@pytest.fixture
def alice():
    return Actor.from_token(make_token("alice"))


@pytest.fixture
def bob():
    return Actor.from_token(make_token("bob"))


@pytest.fixture
def cache():
    return NoteCache()


@pytest.fixture
async def make_client(app, test_settings):
    """Factory for API clients bound to the fake service, closed after the test."""
    clients = []

    def _make(actor: Actor) -> NotesApiClient:
        client = NotesApiClient(
            actor,
            BASE_URL,
            transport=httpx.ASGITransport(app=app),
            settings=test_settings,
        )
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
def alice_client(make_client, alice):
    return make_client(alice)


@pytest.fixture
def bob_client(make_client, bob):
    return make_client(bob)
