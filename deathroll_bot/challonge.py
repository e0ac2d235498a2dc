"""Thin async adapter over the Challonge v1 REST API."""

from __future__ import annotations

import asyncio
import logging
from typing import Final

import requests

from .errors import ProviderError
from .models import BracketSnapshot, CurrentMatch

log: Final = logging.getLogger("deathroll-bot.challonge")

DEFAULT_API_BASE: Final[str] = "https://api.challonge.com/v1"
DEFAULT_TOURNAMENT_TYPE: Final[str] = "single elimination"
_MAX_ERROR_LENGTH: Final[int] = 300


def _summarize(text: str) -> str:
    summary = " ".join(text.split())
    if len(summary) > _MAX_ERROR_LENGTH:
        summary = summary[: _MAX_ERROR_LENGTH - 1] + "…"
    return summary


def _unwrap(entry: object, key: str) -> dict:
    """Challonge wraps every object as ``{"<key>": {...}}``; accept both forms."""
    if not isinstance(entry, dict):
        return {}
    inner = entry.get(key)
    if isinstance(inner, dict):
        return inner
    return entry


def _unwrap_list(response: object, key: str, plural: str) -> list[dict]:
    if isinstance(response, dict):
        response = response.get(plural) or []
    if not isinstance(response, list):
        return []
    return [item for item in (_unwrap(entry, key) for entry in response) if item]


class ChallongeClient:
    def __init__(
        self,
        api_key: str,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError("A Challonge API key is required")
        self._api_key = api_key
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def close(self) -> None:
        self._session.close()

    async def _request(
        self, method: str, path: str, *, payload: dict[str, object] | None = None
    ) -> object:
        url = f"{self._api_base}/{path.lstrip('/')}"

        def _do_request() -> object:
            response = self._session.request(
                method,
                url,
                params={"api_key": self._api_key},
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
            if not response.ok:
                body = response.text or ""
                raise ProviderError(
                    f"Challonge API request failed with status "
                    f"{response.status_code}: {_summarize(body)}",
                    status=response.status_code,
                    body=body,
                )
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                raise ProviderError(
                    "Challonge returned a response that is not JSON",
                    status=response.status_code,
                    body=response.text or "",
                ) from exc

        log.debug("Challonge %s %s", method, path)
        try:
            return await asyncio.to_thread(_do_request)
        except requests.RequestException as exc:
            raise ProviderError(f"Challonge request failed: {_summarize(str(exc))}") from exc

    # ----- Tournaments -----
    async def create_tournament(
        self, name: str, *, tournament_type: str = DEFAULT_TOURNAMENT_TYPE
    ) -> dict:
        response = await self._request(
            "POST",
            "/tournaments.json",
            payload={"tournament": {"name": name, "tournament_type": tournament_type}},
        )
        tournament = _unwrap(response, "tournament")
        if "id" not in tournament:
            raise ProviderError("Challonge did not return a tournament id")
        return tournament

    async def add_participant(self, tournament_id: str, name: str) -> dict:
        response = await self._request(
            "POST",
            f"/tournaments/{tournament_id}/participants.json",
            payload={"participant": {"name": name}},
        )
        return _unwrap(response, "participant")

    async def push_bracket(self, snapshot: BracketSnapshot) -> dict:
        """Create the tournament and register every player from the snapshot."""
        tournament = await self.create_tournament(snapshot.name)
        tournament_id = str(tournament["id"])
        for player in snapshot.players:
            try:
                await self.add_participant(tournament_id, player)
            except ProviderError:
                log.warning(
                    "Adding %r to Challonge tournament %s failed; tournament left behind",
                    player,
                    tournament_id,
                )
                raise
        return tournament

    async def start_tournament(self, tournament_id: str) -> dict:
        response = await self._request(
            "POST", f"/tournaments/{tournament_id}/start.json"
        )
        return _unwrap(response, "tournament")

    async def finalize(self, tournament_id: str) -> dict:
        response = await self._request(
            "POST", f"/tournaments/{tournament_id}/finalize.json"
        )
        return _unwrap(response, "tournament")

    async def fetch_state(self, tournament_id: str) -> str:
        response = await self._request("GET", f"/tournaments/{tournament_id}.json")
        return str(_unwrap(response, "tournament").get("state") or "")

    # ----- Matches -----
    async def fetch_matches(self, tournament_id: str) -> list[dict]:
        response = await self._request(
            "GET", f"/tournaments/{tournament_id}/matches.json"
        )
        return _unwrap_list(response, "match", "matches")

    async def fetch_participants(self, tournament_id: str) -> list[dict]:
        response = await self._request(
            "GET", f"/tournaments/{tournament_id}/participants.json"
        )
        return _unwrap_list(response, "participant", "participants")

    async def fetch_current_match(self, tournament_id: str) -> CurrentMatch | None:
        """Return the first open, unscored match or ``None``.

        Failures are logged and reported as ``None``; the result only feeds the
        live status display.
        """
        try:
            matches = await self.fetch_matches(tournament_id)
            participants = await self.fetch_participants(tournament_id)
        except ProviderError as exc:
            log.warning("Could not fetch current match for %s: %s", tournament_id, exc)
            return None

        names = {
            str(p.get("id")): str(p.get("name") or p.get("display_name") or "TBD")
            for p in participants
            if p.get("id") is not None
        }
        for match in matches:
            if match.get("state") != "open":
                continue
            if str(match.get("scores_csv") or "").strip():
                continue
            round_raw = match.get("round")
            try:
                round_number = int(round_raw) if round_raw is not None else None
            except (TypeError, ValueError):
                round_number = None
            match_id = match.get("id")
            return CurrentMatch(
                player1=names.get(str(match.get("player1_id")), "TBD"),
                player2=names.get(str(match.get("player2_id")), "TBD"),
                round=round_number,
                match_id=str(match_id) if match_id is not None else None,
            )
        return None


__all__ = ["ChallongeClient", "DEFAULT_API_BASE"]
