from __future__ import annotations

import pytest
from fakes import OWNER_ROLE, STAFF_ROLE, FakeProvider, MemoryBackend

from deathroll_bot import Actor, GuildStore, JsonFileBackend, TournamentOrchestrator
from deathroll_bot.selection import SelectionCache


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def store(backend: MemoryBackend) -> GuildStore:
    return GuildStore.open(backend)


@pytest.fixture
def file_store(tmp_path) -> GuildStore:
    return GuildStore.open(JsonFileBackend(tmp_path / "db.json"))


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def clock():
    class _Clock:
        def __init__(self) -> None:
            self.now = 1000.0

        def __call__(self) -> float:
            return self.now

    return _Clock()


@pytest.fixture
def orchestrator(store, provider, clock) -> TournamentOrchestrator:
    return TournamentOrchestrator(
        store,
        provider,
        selection_cache=SelectionCache(ttl_seconds=300, clock=clock),
        default_owner_role_id=OWNER_ROLE,
        default_staff_role_id=STAFF_ROLE,
    )


@pytest.fixture
def owner() -> Actor:
    return Actor.build(1, "Owner", [OWNER_ROLE])


@pytest.fixture
def staff() -> Actor:
    return Actor.build(2, "Staff", [STAFF_ROLE])


@pytest.fixture
def player() -> Actor:
    return Actor.build(3, "Alice")


@pytest.fixture
def other_player() -> Actor:
    return Actor.build(4, "Bob")
