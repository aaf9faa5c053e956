"""Match-result ingestion: parse webhook payloads, score ranks, reconcile against standings."""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import config
from standings.errors import DuplicateDeliveryError, PayloadError
from standings.models import Player
from standings.models.base import PENDING_PROFILE
from standings.services.profile_api import ProfileAPIService
from standings.services.schedule import resolve_partition
from standings.services.scoring import points_for_rank, wins_for_rank
from standings.storage import PendingIncrement, PlayerIncrement, ResultPlan, StorageAdapter

logger = logging.getLogger("standings.ingest")

RANK_SLOTS = (
    "first",
    "second",
    "third",
    "fourth",
    "fifth",
    "sixth",
    "seventh",
    "eighth",
    "ninth",
    "tenth",
)
INVALID_NAME = "<invalid>"
MAX_DELIVERY_KEY = 128


class UnmatchedPolicy(str, enum.Enum):
    """What to do with a result for a name that has no registered player."""

    PENDING = "pending"  # accrue in pending winners until an admin approves
    EAGER = "eager"  # register immediately; avatar filled in later
    SKIP = "skip"  # ignore and report as not registered

    @classmethod
    def from_config(cls) -> "UnmatchedPolicy":
        try:
            return cls(config.UNMATCHED_POLICY)
        except ValueError:
            raise ValueError(
                f"Unknown UNMATCHED_POLICY {config.UNMATCHED_POLICY!r} (expected pending, eager or skip)"
            ) from None


@dataclass(frozen=True)
class RankedEntry:
    name: Any  # as received; validated during reconciliation
    rank: Optional[int]


@dataclass
class IngestionSummary:
    day: str = ""
    tournament_type: str = ""
    event: str = ""
    updated: int = 0
    created: int = 0
    pending: int = 0
    skipped: int = 0
    skipped_players: list[str] = field(default_factory=list)
    duplicate: bool = False
    new_player_ids: list[str] = field(default_factory=list)

    def skip(self, name: str) -> None:
        self.skipped += 1
        self.skipped_players.append(name)

    def to_dict(self) -> dict:
        return {
            "updated": self.updated,
            "created": self.created,
            "pending": self.pending,
            "skipped": self.skipped,
            "skipped_players": list(self.skipped_players),
            "duplicate": self.duplicate,
            "day": self.day,
            "tournament_type": self.tournament_type,
            "event": self.event,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "IngestionSummary":
        known = {k: data[k] for k in cls().to_dict() if k in data}
        return cls(**known)


def _coerce_rank(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    # isdecimal, not isdigit: int() rejects superscripts like "²"
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return None


def _optional_str(body: dict, key: str) -> Optional[str]:
    value = body.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise PayloadError(f"{key} must be a string")
    return value


def parse_result_payload(body: Any) -> list[RankedEntry]:
    """Normalize any supported result shape into an ordered list of (name, rank).

    Shapes, checked in this order:
      {"results": [{"username": "a", "rank": 1}, ...]}
      {"first": "a", "second": "b", ... "tenth": "j"}
      {"username": "a"}  (single winner)
    """
    if not isinstance(body, dict):
        raise PayloadError("Request body must be a JSON object")

    if "results" in body:
        results = body["results"]
        if not isinstance(results, list):
            raise PayloadError("results must be a list of {username, rank} objects")
        entries = [
            RankedEntry(item.get("username"), _coerce_rank(item.get("rank")))
            if isinstance(item, dict)
            else RankedEntry(None, None)
            for item in results
        ]
    elif any(slot in body for slot in RANK_SLOTS):
        entries = []
        for rank, slot in enumerate(RANK_SLOTS, start=1):
            value = body.get(slot)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            entries.append(RankedEntry(value, rank))
    elif "username" in body:
        name = body["username"]
        if not isinstance(name, str) or not name.strip():
            raise PayloadError("Username is required")
        entries = [RankedEntry(name, 1)]
    else:
        raise PayloadError("Expected username, rank fields (first..tenth) or a results list")

    if not entries:
        raise PayloadError("Payload contains no results")
    return entries


class ResultIngestionService:
    """Applies one webhook delivery to the standings. Stateless between calls."""

    def __init__(
        self,
        storage: StorageAdapter,
        profiles: ProfileAPIService,
        policy: UnmatchedPolicy = UnmatchedPolicy.PENDING,
        profile_attempts: int = 2,
    ):
        self.storage = storage
        self.profiles = profiles
        self.policy = policy
        self.profile_attempts = profile_attempts

    async def ingest(
        self,
        body: Any,
        delivery_key: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> IngestionSummary:
        entries = parse_result_payload(body)
        delivery_key = delivery_key or _optional_str(body, "delivery_id")
        if delivery_key and len(delivery_key) > MAX_DELIVERY_KEY:
            raise PayloadError(f"Delivery key longer than {MAX_DELIVERY_KEY} characters")
        day, tournament_type, event = resolve_partition(
            _optional_str(body, "day"),
            _optional_str(body, "tournament_type"),
            _optional_str(body, "event"),
            now,
        )

        if delivery_key:
            stored = await self.storage.get_delivery(delivery_key)
            if stored is not None:
                logger.info("Delivery %s already applied; ignoring", delivery_key)
                return self._duplicate(stored)

        summary = IngestionSummary(day=day, tournament_type=tournament_type, event=event)
        players = await self.storage.get_players(day, tournament_type, event)
        registered = {p.username.lower(): p for p in players}
        increments: dict[str, PlayerIncrement] = {}
        new_players: dict[str, Player] = {}
        pending: dict[str, PendingIncrement] = {}

        for entry in entries:
            name = entry.name.strip() if isinstance(entry.name, str) else ""
            if not name:
                logger.warning("Skipping result with invalid username %r", entry.name)
                summary.skip(INVALID_NAME)
                continue
            wins, points = wins_for_rank(entry.rank), points_for_rank(entry.rank)
            key = name.lower()

            existing = registered.get(key)
            if existing:
                inc = increments.setdefault(existing.id, PlayerIncrement(existing.id))
                inc.wins += wins
                inc.points += points
                summary.updated += 1
            elif key in new_players:
                new_players[key].wins += wins
                new_players[key].points += points
                summary.updated += 1
            elif self.policy is UnmatchedPolicy.PENDING:
                inc = pending.setdefault(key, PendingIncrement(name, day, tournament_type, event))
                inc.wins += wins
                inc.points += points
                summary.pending += 1
            elif self.policy is UnmatchedPolicy.EAGER:
                new_players[key] = await self._register(name, wins, points, day, tournament_type, event)
                summary.created += 1
            else:
                logger.info("Skipping %s: not registered for %s/%s/%s", name, event, day, tournament_type)
                summary.skip(name)

        plan = ResultPlan(
            player_increments=list(increments.values()),
            new_players=list(new_players.values()),
            pending_increments=list(pending.values()),
            delivery_key=delivery_key,
            summary=summary.to_dict(),
        )
        if plan.is_empty and not delivery_key:
            return summary
        try:
            await self.storage.apply_results(plan)
        except DuplicateDeliveryError:
            logger.info("Delivery %s applied concurrently; ignoring", delivery_key)
            return self._duplicate(await self.storage.get_delivery(delivery_key) or {})

        summary.new_player_ids = [p.id for p in plan.new_players]
        logger.info(
            "Results applied for %s/%s/%s: %d updated, %d created, %d pending, %d skipped",
            event, day, tournament_type, summary.updated, summary.created, summary.pending, summary.skipped,
        )
        return summary

    def _duplicate(self, stored: dict) -> IngestionSummary:
        summary = IngestionSummary.from_dict(stored)
        summary.duplicate = True
        return summary

    async def _register(self, name, wins, points, day, tournament_type, event) -> Player:
        """New player for an unmatched name. Unresolvable profiles keep the pending sentinel for the backfill job."""
        profile = await self.profiles.resolve_user(name, self.profile_attempts)
        if profile is None:
            logger.warning("No profile for %s; registering with unresolved profile", name)
            return Player.create(
                username=name,
                display_name=name,
                external_user_id=PENDING_PROFILE,
                wins=wins,
                points=points,
                day=day,
                tournament_type=tournament_type,
                event=event,
            )
        return Player.create(
            username=profile.name if profile.name.lower() == name.lower() else name,
            display_name=profile.display_name,
            external_user_id=profile.id,
            wins=wins,
            points=points,
            day=day,
            tournament_type=tournament_type,
            event=event,
        )
