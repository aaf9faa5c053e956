"""Public API routes: leaderboard standings and pending winners."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from standings.errors import InvalidTournamentTypeError
from standings.models import PendingWinner, Player
from standings.services.schedule import resolve_partition
from standings.services.standings import StandingsService
from web.api.deps import get_standings_service
from web.api.utils import player_display_name

router = APIRouter(prefix="/api", tags=["leaderboard"])


# --- Pydantic schemas ---


class PlayerResponse(BaseModel):
    id: str
    rank: Optional[int] = None
    username: str
    display_name: str
    external_user_id: str
    wins: int
    points: int
    avatar_url: str
    created_at: Optional[datetime] = None
    day: str
    tournament_type: str
    event: str

    @classmethod
    def from_player(cls, player: Player, rank: Optional[int] = None) -> "PlayerResponse":
        return cls(
            id=player.id,
            rank=rank,
            username=player.username,
            display_name=player_display_name(player),
            external_user_id=player.external_user_id,
            wins=player.wins,
            points=player.points,
            avatar_url=player.avatar_url or "",
            created_at=player.created_at,
            day=player.day,
            tournament_type=player.tournament_type,
            event=player.event,
        )


class PendingWinnerResponse(BaseModel):
    username: str
    wins: int
    points: int
    day: str
    tournament_type: str
    event: str

    @classmethod
    def from_pending(cls, pending: PendingWinner) -> "PendingWinnerResponse":
        return cls(**pending.to_dict())


class LeaderboardResponse(BaseModel):
    day: str
    tournament_type: str
    event: str
    players: list[PlayerResponse]


class PendingListResponse(BaseModel):
    day: str
    tournament_type: str
    event: str
    pending: list[PendingWinnerResponse]


def _partition_or_400(day, tournament_type, event) -> tuple[str, str, str]:
    try:
        return resolve_partition(day, tournament_type, event)
    except InvalidTournamentTypeError as e:
        raise HTTPException(400, str(e)) from e


# --- Leaderboard ---


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    day: Optional[str] = None,
    tournament_type: Optional[str] = None,
    event: Optional[str] = None,
    service: StandingsService = Depends(get_standings_service),
):
    """Players for one event/day/tournament, best first. Omitted filters default to the current tournament."""
    day, tournament_type, event = _partition_or_400(day, tournament_type, event)
    players = await service.list_players(day, tournament_type, event)
    return LeaderboardResponse(
        day=day,
        tournament_type=tournament_type,
        event=event,
        players=[PlayerResponse.from_player(p, rank) for rank, p in enumerate(players, 1)],
    )


@router.get("/pending", response_model=PendingListResponse)
async def get_pending_winners(
    day: Optional[str] = None,
    tournament_type: Optional[str] = None,
    event: Optional[str] = None,
    service: StandingsService = Depends(get_standings_service),
):
    """Unregistered winners waiting for approval, most wins first."""
    day, tournament_type, event = _partition_or_400(day, tournament_type, event)
    pending = await service.list_pending_winners(day, tournament_type, event)
    return PendingListResponse(
        day=day,
        tournament_type=tournament_type,
        event=event,
        pending=[PendingWinnerResponse.from_pending(p) for p in pending],
    )
