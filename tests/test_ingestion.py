"""Tests for result payload parsing and reconciliation against standings."""
from datetime import datetime

import pytest

from standings.errors import InvalidTournamentTypeError, PayloadError
from standings.models import Player
from standings.services.ingestion import (
    INVALID_NAME,
    RankedEntry,
    ResultIngestionService,
    UnmatchedPolicy,
    parse_result_payload,
)

SATURDAY = datetime(2024, 1, 20, 10, 0)
SUNDAY_SPECIAL = datetime(2024, 1, 21, 13, 15)


def register(storage, username, wins=0, points=0, day="saturday", **fields):
    return storage.add_player(
        Player.create(
            username=username,
            display_name=username,
            external_user_id=fields.pop("external_user_id", "1"),
            wins=wins,
            points=points,
            day=day,
            tournament_type=fields.pop("tournament_type", "all-day"),
            event=fields.pop("event", "test-event"),
            **fields,
        )
    )


# --- Parsing ---


def test_parse_results_list():
    entries = parse_result_payload({"results": [{"username": "a", "rank": 1}, {"username": "b", "rank": "2"}]})
    assert entries == [RankedEntry("a", 1), RankedEntry("b", 2)]


def test_parse_results_list_keeps_bad_items_for_skipping():
    entries = parse_result_payload(
        {"results": [{"username": "a", "rank": "x"}, "junk", {"username": "b", "rank": "²"}, {"username": "c", "rank": 2.5}]}
    )
    assert entries == [RankedEntry("a", None), RankedEntry(None, None), RankedEntry("b", None), RankedEntry("c", None)]


def test_parse_whole_number_float_ranks():
    entries = parse_result_payload({"results": [{"username": "a", "rank": 1.0}, {"username": "b", "rank": 3.0}]})
    assert entries == [RankedEntry("a", 1), RankedEntry("b", 3)]


@pytest.mark.asyncio
async def test_unparseable_rank_does_not_fail_the_batch(sql_storage, profiles):
    alice = await register(sql_storage, "Alice")
    bob = await register(sql_storage, "Bob")
    service = ResultIngestionService(sql_storage, profiles)

    summary = await service.ingest(
        {"results": [{"username": "Alice", "rank": "1"}, {"username": "Bob", "rank": "²"}]}, now=SATURDAY
    )

    assert summary.updated == 2
    assert ((await sql_storage.get_player(alice.id)).points, (await sql_storage.get_player(bob.id)).points) == (100, 0)


def test_parse_rank_slots_in_order():
    entries = parse_result_payload({"third": "c", "first": "a", "second": "", "tenth": "j"})
    assert entries == [RankedEntry("a", 1), RankedEntry("c", 3), RankedEntry("j", 10)]


def test_parse_single_winner():
    assert parse_result_payload({"username": "solo"}) == [RankedEntry("solo", 1)]


def test_results_list_takes_precedence():
    entries = parse_result_payload({"results": [{"username": "a", "rank": 2}], "first": "b", "username": "c"})
    assert entries == [RankedEntry("a", 2)]


@pytest.mark.parametrize(
    "body",
    [
        [],
        "first",
        {},
        {"username": ""},
        {"username": "   "},
        {"username": 42},
        {"results": []},
        {"results": "a,b"},
        {"first": "", "second": None},
        {"day": "saturday"},
    ],
)
def test_parse_rejects_malformed_payloads(body):
    with pytest.raises(PayloadError):
        parse_result_payload(body)


# --- Reconciliation ---


@pytest.mark.asyncio
async def test_registered_players_are_credited_case_insensitively(storage, profiles):
    await storage.init()
    alice = await register(storage, "Alice", wins=1, points=100)
    service = ResultIngestionService(storage, profiles)

    summary = await service.ingest({"first": "ALICE", "second": "alice "}, now=SATURDAY)

    assert summary.updated == 2
    assert summary.pending == 0
    updated = await storage.get_player(alice.id)
    assert (updated.wins, updated.points) == (2, 270)
    assert len(await storage.get_players()) == 1


@pytest.mark.asyncio
async def test_pending_policy_accrues_unmatched_names(storage, profiles, directory):
    await storage.init()
    service = ResultIngestionService(storage, profiles, UnmatchedPolicy.PENDING)

    summary = await service.ingest({"first": "bob", "second": "carol"}, now=SATURDAY)

    assert (summary.pending, summary.updated, summary.created) == (2, 0, 0)
    assert (summary.day, summary.tournament_type, summary.event) == ("saturday", "all-day", "test-event")
    pending = {p.username: (p.wins, p.points) for p in await storage.get_pending_winners()}
    assert pending == {"bob": (1, 100), "carol": (0, 70)}
    assert await storage.get_players() == []
    assert directory.requests == []

    await service.ingest({"first": "carol"}, now=SATURDAY)
    carol = await storage.get_pending_winner("carol", "saturday", "all-day", "test-event")
    assert (carol.wins, carol.points) == (1, 170)


@pytest.mark.asyncio
async def test_eager_policy_registers_with_resolved_profile(storage, profiles, directory):
    await storage.init()
    directory.add(77, "Bobby", "Bobby B")
    service = ResultIngestionService(storage, profiles, UnmatchedPolicy.EAGER)

    summary = await service.ingest({"first": "bobby", "second": "ghost"}, now=SATURDAY)

    assert summary.created == 2
    assert len(summary.new_player_ids) == 2
    players = {p.username: p for p in await storage.get_players()}
    assert set(players) == {"Bobby", "ghost"}
    assert (players["Bobby"].external_user_id, players["Bobby"].display_name) == ("77", "Bobby B")
    assert (players["Bobby"].wins, players["Bobby"].points) == (1, 100)
    assert players["ghost"].external_user_id == "pending"
    assert players["ghost"].points == 70
    assert await storage.get_pending_winners() == []


@pytest.mark.asyncio
async def test_eager_policy_repeated_name_creates_one_player(storage, profiles, directory):
    await storage.init()
    directory.add(5, "dup")
    service = ResultIngestionService(storage, profiles, UnmatchedPolicy.EAGER)

    summary = await service.ingest(
        {"results": [{"username": "dup", "rank": 1}, {"username": "DUP", "rank": 3}]}, now=SATURDAY
    )

    assert (summary.created, summary.updated) == (1, 1)
    players = await storage.get_players()
    assert [(p.username, p.wins, p.points) for p in players] == [("dup", 1, 150)]


@pytest.mark.asyncio
async def test_skip_policy_reports_unregistered(storage, profiles):
    await storage.init()
    await register(storage, "Alice")
    service = ResultIngestionService(storage, profiles, UnmatchedPolicy.SKIP)

    summary = await service.ingest({"first": "Alice", "second": "stranger"}, now=SATURDAY)

    assert summary.updated == 1
    assert summary.skipped == 1
    assert summary.skipped_players == ["stranger"]
    assert await storage.get_pending_winners() == []


@pytest.mark.asyncio
async def test_invalid_names_are_skipped_not_fatal(storage, profiles):
    await storage.init()
    await register(storage, "Alice")
    service = ResultIngestionService(storage, profiles)

    summary = await service.ingest(
        {"results": [{"username": "Alice", "rank": 1}, {"username": "", "rank": 2}, {"rank": 3}]},
        now=SATURDAY,
    )

    assert summary.updated == 1
    assert summary.skipped_players == [INVALID_NAME, INVALID_NAME]


@pytest.mark.asyncio
async def test_results_only_touch_their_partition(storage, profiles):
    await storage.init()
    sat = await register(storage, "Alice", day="saturday")
    sun = await register(storage, "Alice", day="sunday")
    special = await register(storage, "Alice", day="sunday", tournament_type="special")
    service = ResultIngestionService(storage, profiles)

    summary = await service.ingest({"first": "Alice"}, now=SUNDAY_SPECIAL)

    assert (summary.day, summary.tournament_type) == ("sunday", "special")
    assert (await storage.get_player(special.id)).wins == 1
    assert (await storage.get_player(sat.id)).wins == 0
    assert (await storage.get_player(sun.id)).wins == 0


@pytest.mark.asyncio
async def test_payload_overrides_partition(storage, profiles):
    await storage.init()
    service = ResultIngestionService(storage, profiles)

    summary = await service.ingest(
        {"username": "bob", "day": "Friday", "tournament_type": "special", "event": "finals"}, now=SATURDAY
    )

    assert (summary.day, summary.tournament_type, summary.event) == ("friday", "special", "finals")
    assert await storage.get_pending_winner("bob", "friday", "special", "finals") is not None


@pytest.mark.asyncio
async def test_invalid_tournament_type_rejected(sql_storage, profiles):
    service = ResultIngestionService(sql_storage, profiles)
    with pytest.raises(InvalidTournamentTypeError):
        await service.ingest({"username": "bob", "tournament_type": "weekly"}, now=SATURDAY)
    assert await sql_storage.get_pending_winners() == []


@pytest.mark.asyncio
async def test_repeated_delivery_is_applied_once(storage, profiles):
    await storage.init()
    alice = await register(storage, "Alice")
    service = ResultIngestionService(storage, profiles)
    body = {"first": "Alice", "second": "bob", "delivery_id": "match-42"}

    first = await service.ingest(body, now=SATURDAY)
    again = await service.ingest(body, now=SATURDAY)

    assert first.duplicate is False
    assert again.duplicate is True
    assert (again.updated, again.pending) == (first.updated, first.pending)
    assert (await storage.get_player(alice.id)).points == 100
    bob = await storage.get_pending_winner("bob", "saturday", "all-day", "test-event")
    assert (bob.wins, bob.points) == (0, 70)


@pytest.mark.asyncio
async def test_header_key_overrides_body_delivery_id(sql_storage, profiles):
    alice = await register(sql_storage, "Alice")
    service = ResultIngestionService(sql_storage, profiles)

    await service.ingest({"first": "Alice", "delivery_id": "a"}, delivery_key="header-1", now=SATURDAY)
    second = await service.ingest({"first": "Alice", "delivery_id": "a"}, now=SATURDAY)

    assert second.duplicate is False
    assert (await sql_storage.get_player(alice.id)).wins == 2
    assert await sql_storage.get_delivery("header-1") is not None


@pytest.mark.asyncio
async def test_overlong_delivery_key_rejected(sql_storage, profiles):
    service = ResultIngestionService(sql_storage, profiles)
    with pytest.raises(PayloadError):
        await service.ingest({"first": "Alice"}, delivery_key="k" * 500, now=SATURDAY)


def test_unmatched_policy_from_config(monkeypatch):
    import config

    monkeypatch.setattr(config, "UNMATCHED_POLICY", "eager")
    assert UnmatchedPolicy.from_config() is UnmatchedPolicy.EAGER
    monkeypatch.setattr(config, "UNMATCHED_POLICY", "whatever")
    with pytest.raises(ValueError):
        UnmatchedPolicy.from_config()
