from __future__ import annotations

from fakes import GUILD, OTHER_GUILD, MemoryBackend

from deathroll_bot import GuildStore, PlayerEntry, RosterManager


def build_roster() -> tuple[RosterManager, GuildStore, MemoryBackend]:
    backend = MemoryBackend()
    store = GuildStore.open(backend)
    return RosterManager(store), store, backend


def test_add_players_groups_by_submitter() -> None:
    roster, _, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice"])
    roster.add_players(GUILD, 2, ["Bob", "Carol"])
    roster.add_players(GUILD, 1, ["Dave"])

    assert roster.list_for_user(GUILD, 1) == ["Alice", "Dave"]
    assert roster.list_all(GUILD) == ["Alice", "Dave", "Bob", "Carol"]
    assert roster.count(GUILD) == 4
    assert roster.list_all(OTHER_GUILD) == []


def test_add_nothing_writes_nothing() -> None:
    roster, _, backend = build_roster()
    roster.add_players(GUILD, 1, [])

    assert backend.saves == []


def test_remove_players_drops_empty_lists() -> None:
    roster, store, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice", "Bob"])

    roster.remove_players(GUILD, 1, ["Alice"])
    assert roster.list_for_user(GUILD, 1) == ["Bob"]

    roster.remove_players(GUILD, 1, ["Bob"])
    assert "1" not in store.get(GUILD).players
    assert roster.list_for_user(GUILD, 1) == []


def test_remove_players_without_change_skips_write() -> None:
    roster, _, backend = build_roster()
    roster.add_players(GUILD, 1, ["Alice"])
    writes = len(backend.saves)

    roster.remove_players(GUILD, 1, ["Zed"])
    roster.remove_players(GUILD, 1, [])
    roster.remove_players(GUILD, 2, ["Alice"])

    assert len(backend.saves) == writes
    assert roster.list_all(GUILD) == ["Alice"]


def test_remove_one_only_removes_first_occurrence() -> None:
    roster, _, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice", "Alice"])

    assert roster.remove_one(GUILD, 1, "Alice") is True
    assert roster.list_for_user(GUILD, 1) == ["Alice"]
    assert roster.remove_one(GUILD, 1, "Alice") is True
    assert roster.remove_one(GUILD, 1, "Alice") is False


def test_clear_empties_only_that_guild() -> None:
    roster, _, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice"])
    roster.add_players(OTHER_GUILD, 1, ["Alice"])

    roster.clear(GUILD)

    assert roster.count(GUILD) == 0
    assert roster.count(OTHER_GUILD) == 1


def test_nickname_change_renames_existing_signup() -> None:
    roster, _, _ = build_roster()
    roster.set_nickname(GUILD, 1, "Ace")
    roster.add_players(GUILD, 1, ["Ace", "Friend"])

    roster.set_nickname(GUILD, 1, "King")

    assert roster.get_nickname(GUILD, 1) == "King"
    assert roster.list_for_user(GUILD, 1) == ["King", "Friend"]


def test_nickname_change_to_listed_name_keeps_entries_unique() -> None:
    roster, _, _ = build_roster()
    roster.set_nickname(GUILD, 1, "Ace")
    roster.add_players(GUILD, 1, ["Ace", "King"])

    roster.set_nickname(GUILD, 1, "King")

    assert roster.get_nickname(GUILD, 1) == "King"
    assert roster.list_for_user(GUILD, 1) == ["King"]
    assert roster.count(GUILD) == 1


def test_nickname_round_trip_renames_in_place() -> None:
    roster, _, _ = build_roster()
    roster.set_nickname(GUILD, 1, "X")
    roster.add_players(GUILD, 1, ["First", "X", "Last"])

    roster.set_nickname(GUILD, 1, "Y")
    roster.set_nickname(GUILD, 1, "X")

    assert roster.list_for_user(GUILD, 1) == ["First", "X", "Last"]


def test_list_for_user_returns_copy() -> None:
    roster, _, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice"])

    roster.list_for_user(GUILD, 1).append("Mallory")

    assert roster.list_all(GUILD) == ["Alice"]


def test_list_entries_keeps_submitter() -> None:
    roster, _, _ = build_roster()
    roster.add_players(GUILD, 1, ["Alice"])
    roster.add_players(GUILD, 2, ["Bob"])

    assert roster.list_entries(GUILD) == [
        PlayerEntry(user_id="1", name="Alice"),
        PlayerEntry(user_id="2", name="Bob"),
    ]
