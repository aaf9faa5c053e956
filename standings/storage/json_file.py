"""Flat-file storage backend: JSON documents in a data directory.

Used when no database is available. Each collection is one file, rewritten
atomically (temp file + rename). All access is serialised through a single
asyncio lock, so this backend is for one process only.
"""
from __future__ import annotations

import asyncio
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from standings.errors import DuplicateDeliveryError, StorageError
from standings.models import PendingWinner, Player
from standings.models.base import (
    PENDING_PROFILE,
    SCHEMA_VERSION,
    apply_defaults,
    player_defaults,
    record_defaults,
)
from standings.models.game_setting import DEFAULT_GAME_STATUS
from standings.storage.base import PendingIncrement, ResultPlan, StorageAdapter

logger = logging.getLogger("standings.storage")

PLAYERS_FILE = "players.json"
PENDING_FILE = "pending_winners.json"
SETTINGS_FILE = "settings.json"
DELIVERIES_FILE = "deliveries.json"


def _in_partition(record: dict, day, tournament_type, event) -> bool:
    return (
        (day is None or record["day"] == day)
        and (tournament_type is None or record["tournament_type"] == tournament_type)
        and (event is None or record["event"] == event)
    )


def _same_name(record: dict, username: str) -> bool:
    return record["username"].lower() == username.lower()


def _player_from_record(record: dict) -> Player:
    fields = {k: record.get(k) for k in player_defaults()}
    fields.update(id=record["id"], username=record["username"])
    for key in ("created_at", "profile_checked_at"):
        value = record.get(key)
        fields[key] = datetime.fromisoformat(value) if value else None
    return Player(**fields)


def _pending_from_record(record: dict) -> PendingWinner:
    return PendingWinner(
        username=record["username"],
        wins=record["wins"],
        points=record["points"],
        day=record["day"],
        tournament_type=record["tournament_type"],
        event=record["event"],
    )


class JSONFileStorage(StorageAdapter):
    """Storage in players.json / pending_winners.json / settings.json / deliveries.json."""

    def __init__(self, data_dir: Path | str):
        self._dir = Path(data_dir)
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Could not create data directory {self._dir}: {e}") from e

    # --- File helpers (call with the lock held) ---

    def _read(self, name: str):
        path = self._dir / name
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def _write(self, name: str, data) -> None:
        path = self._dir / name
        tmp = path.with_name(path.name + ".tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    def _load(self, name: str, defaults: dict) -> list[dict]:
        """Load a collection, upgrading records written by older schema versions."""
        data = self._read(name)
        if data is None:
            return []
        if isinstance(data, list):  # pre-versioning files were a bare list
            records, version = data, 1
        else:
            records, version = data.get("records", []), data.get("schema_version", 1)
        records = [apply_defaults(r, defaults) for r in records]
        if version < SCHEMA_VERSION:
            logger.info("Migrating %s from schema %d to %d", name, version, SCHEMA_VERSION)
            self._save(name, records)
        return records

    def _save(self, name: str, records: list[dict]) -> None:
        self._write(name, {"schema_version": SCHEMA_VERSION, "records": records})

    def _load_players(self) -> list[dict]:
        return self._load(PLAYERS_FILE, player_defaults())

    def _load_pending(self) -> list[dict]:
        return self._load(PENDING_FILE, record_defaults())

    @staticmethod
    def _add_pending(pending: list[dict], inc: PendingIncrement) -> None:
        for record in pending:
            if _same_name(record, inc.username) and _in_partition(
                record, inc.day, inc.tournament_type, inc.event
            ):
                record["wins"] = max(0, record["wins"] + inc.wins)
                record["points"] = max(0, record["points"] + inc.points)
                return
        pending.append(
            {
                "username": inc.username,
                "wins": max(0, inc.wins),
                "points": max(0, inc.points),
                "day": inc.day,
                "tournament_type": inc.tournament_type,
                "event": inc.event,
            }
        )

    @staticmethod
    def _add_to_player(record: dict, wins: int, points: int) -> None:
        record["wins"] = max(0, record["wins"] + wins)
        record["points"] = max(0, record["points"] + points)

    # --- Players ---

    async def get_players(self, day=None, tournament_type=None, event=None) -> list[Player]:
        async with self._lock:
            records = self._load_players()
        return [_player_from_record(r) for r in records if _in_partition(r, day, tournament_type, event)]

    async def get_player(self, player_id: str) -> Optional[Player]:
        async with self._lock:
            records = self._load_players()
        record = next((r for r in records if r["id"] == player_id), None)
        return _player_from_record(record) if record else None

    async def add_player(self, player: Player) -> Player:
        async with self._lock:
            records = self._load_players()
            records.append(player.to_dict())
            self._save(PLAYERS_FILE, records)
        return player

    async def update_player(self, player_id: str, **fields) -> None:
        allowed = set(player_defaults()) | {"username"}
        async with self._lock:
            records = self._load_players()
            for record in records:
                if record["id"] == player_id:
                    record.update(
                        {
                            k: v.isoformat() if isinstance(v, datetime) else v
                            for k, v in fields.items()
                            if k in allowed
                        }
                    )
                    self._save(PLAYERS_FILE, records)
                    return

    async def increment_player(self, player_id: str, wins: int = 0, points: int = 0) -> Optional[Player]:
        async with self._lock:
            records = self._load_players()
            for record in records:
                if record["id"] == player_id:
                    self._add_to_player(record, wins, points)
                    self._save(PLAYERS_FILE, records)
                    return _player_from_record(record)
        return None

    async def delete_player(self, player_id: str) -> bool:
        async with self._lock:
            records = self._load_players()
            kept = [r for r in records if r["id"] != player_id]
            if len(kept) == len(records):
                return False
            self._save(PLAYERS_FILE, kept)
            return True

    async def players_needing_profile(self, limit: int = 1) -> list[Player]:
        async with self._lock:
            records = self._load_players()
        found = [
            r for r in records if r["external_user_id"] == PENDING_PROFILE or not r["avatar_url"]
        ]
        # never-checked players first, then least recently checked
        found.sort(
            key=lambda r: (
                r["profile_checked_at"] is not None,
                r["profile_checked_at"] or "",
                r.get("created_at") or "",
            )
        )
        return [_player_from_record(r) for r in found[:limit]]

    # --- Pending winners ---

    async def get_pending_winners(self, day=None, tournament_type=None, event=None) -> list[PendingWinner]:
        async with self._lock:
            records = self._load_pending()
        return [_pending_from_record(r) for r in records if _in_partition(r, day, tournament_type, event)]

    async def get_pending_winner(self, username, day, tournament_type, event) -> Optional[PendingWinner]:
        async with self._lock:
            records = self._load_pending()
        for record in records:
            if _same_name(record, username) and _in_partition(record, day, tournament_type, event):
                return _pending_from_record(record)
        return None

    async def increment_pending_winner(self, username, day, wins, points, tournament_type, event) -> None:
        async with self._lock:
            pending = self._load_pending()
            self._add_pending(
                pending, PendingIncrement(username, day, tournament_type, event, wins=wins, points=points)
            )
            self._save(PENDING_FILE, pending)

    async def remove_pending_winner(self, username, day=None, tournament_type=None, event=None) -> int:
        async with self._lock:
            pending = self._load_pending()
            kept = [
                r
                for r in pending
                if not (_same_name(r, username) and _in_partition(r, day, tournament_type, event))
            ]
            removed = len(pending) - len(kept)
            if removed:
                self._save(PENDING_FILE, kept)
            return removed

    async def convert_pending_winner(self, pending: PendingWinner, player: Player) -> bool:
        async with self._lock:
            records = self._load_pending()
            kept = [
                r
                for r in records
                if not (
                    _same_name(r, pending.username)
                    and _in_partition(r, pending.day, pending.tournament_type, pending.event)
                )
            ]
            if len(kept) == len(records):
                return False
            players = self._load_players()
            players.append(player.to_dict())
            self._save(PLAYERS_FILE, players)
            self._save(PENDING_FILE, kept)
            return True

    # --- Game status ---

    async def get_game_status(self) -> str:
        async with self._lock:
            settings = self._read(SETTINGS_FILE)
        if not isinstance(settings, dict):
            return DEFAULT_GAME_STATUS
        return settings.get("status") or DEFAULT_GAME_STATUS

    async def set_game_status(self, status: str) -> None:
        async with self._lock:
            settings = self._read(SETTINGS_FILE)
            if not isinstance(settings, dict):
                settings = {}
            settings["status"] = status
            self._write(SETTINGS_FILE, settings)

    # --- Webhook results ---

    async def get_delivery(self, key: str) -> Optional[dict]:
        async with self._lock:
            deliveries = self._read(DELIVERIES_FILE) or {}
        entry = deliveries.get(key)
        return entry["summary"] if entry else None

    async def apply_results(self, plan: ResultPlan) -> None:
        async with self._lock:
            deliveries = self._read(DELIVERIES_FILE) or {}
            if plan.delivery_key and plan.delivery_key in deliveries:
                raise DuplicateDeliveryError(plan.delivery_key)
            players = self._load_players()
            by_id = {r["id"]: r for r in players}
            for inc in plan.player_increments:
                record = by_id.get(inc.player_id)
                if record:
                    self._add_to_player(record, inc.wins, inc.points)
            players.extend(p.to_dict() for p in plan.new_players)
            pending = self._load_pending()
            for inc in plan.pending_increments:
                self._add_pending(pending, inc)

            self._save(PLAYERS_FILE, players)
            self._save(PENDING_FILE, pending)
            if plan.delivery_key:
                deliveries[plan.delivery_key] = {
                    "received_at": datetime.now(timezone.utc).isoformat(),
                    "summary": plan.summary or {},
                }
                self._write(DELIVERIES_FILE, deliveries)
