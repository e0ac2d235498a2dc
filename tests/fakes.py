"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio

from deathroll_bot import BracketSnapshot, CurrentMatch, ProviderError
from deathroll_bot.errors import PersistenceError

GUILD = "111"
OTHER_GUILD = "222"
OWNER_ROLE = "900"
STAFF_ROLE = "901"


class FakeTable:
    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, object]] = {}
        self.put_calls = 0

    def get_item(self, *, Key):
        item = self.items.get((Key["pk"], Key["sk"]))
        return {"Item": dict(item)} if item is not None else {}

    def put_item(self, *, Item):
        self.put_calls += 1
        self.items[(Item["pk"], Item["sk"])] = dict(Item)


class MemoryBackend:
    """Document backend kept in memory, with switchable write failures."""

    def __init__(self, document: object | None = None) -> None:
        self.document = document
        self.saves: list[dict[str, object]] = []
        self.fail_writes = False

    def load(self) -> object | None:
        return self.document

    def save(self, document: dict[str, object]) -> None:
        if self.fail_writes:
            raise PersistenceError("disk full")
        self.saves.append(document)
        self.document = document


class FakeProvider:
    def __init__(self) -> None:
        self.pushed: list[BracketSnapshot] = []
        self.started: list[str] = []
        self.finalized: list[str] = []
        self.remote_state = "underway"
        self.current: CurrentMatch | None = None
        self.fail_on: set[str] = set()
        self.next_id = 1000
        self.finalize_gate: asyncio.Event | None = None
        self.finalize_started = asyncio.Event()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise ProviderError(f"{operation} failed", status=422)

    async def push_bracket(self, snapshot: BracketSnapshot) -> dict:
        self._maybe_fail("push")
        self.pushed.append(snapshot)
        self.next_id += 1
        return {
            "id": self.next_id,
            "full_challonge_url": f"https://challonge.com/dr{self.next_id}",
        }

    async def start_tournament(self, tournament_id: str) -> dict:
        self._maybe_fail("start")
        self.started.append(tournament_id)
        return {"id": tournament_id, "state": "underway"}

    async def finalize(self, tournament_id: str) -> dict:
        self.finalize_started.set()
        if self.finalize_gate is not None:
            await self.finalize_gate.wait()
        self._maybe_fail("finalize")
        self.finalized.append(tournament_id)
        return {"id": tournament_id, "state": "complete"}

    async def fetch_state(self, tournament_id: str) -> str:
        self._maybe_fail("state")
        return self.remote_state

    async def fetch_current_match(self, tournament_id: str) -> CurrentMatch | None:
        self._maybe_fail("match")
        return self.current


