"""Leaderboard queries."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from standings.models import PendingWinner, Player
from standings.services.profile_api import ProfileAPIService
from standings.services.schedule import resolve_partition
from standings.storage import StorageAdapter


def sort_players(players: list[Player]) -> list[Player]:
    """Points descending, ties broken by wins descending."""
    return sorted(players, key=lambda p: (-p.points, -p.wins))


class StandingsService:
    def __init__(self, storage: StorageAdapter, profiles: ProfileAPIService):
        self.storage = storage
        self.profiles = profiles

    async def list_players(
        self,
        day: Optional[str] = None,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[Player]:
        """Players of one partition in leaderboard order, with avatars refreshed where possible."""
        day, tournament_type, event = resolve_partition(day, tournament_type, event, now)
        players = sort_players(await self.storage.get_players(day, tournament_type, event))
        if players:
            avatars = await self.profiles.resolve_avatars_batch(p.external_user_id for p in players)
            for p in players:
                p.avatar_url = avatars.get(p.external_user_id) or p.avatar_url
        return players

    async def list_pending_winners(
        self,
        day: Optional[str] = None,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[PendingWinner]:
        day, tournament_type, event = resolve_partition(day, tournament_type, event, now)
        pending = await self.storage.get_pending_winners(day, tournament_type, event)
        return sorted(pending, key=lambda p: -p.wins)
