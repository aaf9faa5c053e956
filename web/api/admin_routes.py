"""Admin API routes: player registration, counter adjustments, pending-winner approval."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from standings.errors import InvalidTournamentTypeError
from standings.services.admin import AdminResult, AdminService
from web.api.deps import get_admin_service
from web.api.routes import PlayerResponse
from web.api.utils import admin_error_response
from web.auth import require_admin

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


# --- Pydantic schemas ---


class PlayerCreate(BaseModel):
    username: str
    day: Optional[str] = None
    event: Optional[str] = None
    tournament_type: Optional[str] = None


class CounterAdjust(BaseModel):
    delta: int


class PendingAction(BaseModel):
    username: str
    day: str
    tournament_type: Optional[str] = None
    event: Optional[str] = None


class AdminActionResponse(BaseModel):
    ok: bool = True
    message: str
    player: Optional[PlayerResponse] = None


def _respond(result: AdminResult):
    if not result.ok:
        return admin_error_response(result)
    return AdminActionResponse(
        message=result.message,
        player=PlayerResponse.from_player(result.player) if result.player else None,
    )


# --- Players ---


@router.post("/players", response_model=AdminActionResponse)
async def add_player(body: PlayerCreate, admin: AdminService = Depends(get_admin_service)):
    """Register a player (resolves their profile and avatar)."""
    try:
        result = await admin.add_player(body.username, body.day, body.event, body.tournament_type)
    except InvalidTournamentTypeError as e:
        raise HTTPException(400, str(e)) from e
    return _respond(result)


@router.delete("/players/{player_id}", response_model=AdminActionResponse)
async def delete_player(player_id: str, admin: AdminService = Depends(get_admin_service)):
    return _respond(await admin.delete_player(player_id))


@router.post("/players/{player_id}/wins", response_model=AdminActionResponse)
async def adjust_wins(player_id: str, body: CounterAdjust, admin: AdminService = Depends(get_admin_service)):
    """Add delta (may be negative) to wins; never drops below 0."""
    return _respond(await admin.adjust_wins(player_id, body.delta))


@router.post("/players/{player_id}/points", response_model=AdminActionResponse)
async def adjust_points(player_id: str, body: CounterAdjust, admin: AdminService = Depends(get_admin_service)):
    """Add delta (may be negative) to points; never drops below 0."""
    return _respond(await admin.adjust_points(player_id, body.delta))


# --- Pending winners ---


@router.post("/pending/approve", response_model=AdminActionResponse)
async def approve_pending(body: PendingAction, admin: AdminService = Depends(get_admin_service)):
    """Register a pending winner, carrying over accrued wins and points."""
    try:
        result = await admin.approve_pending(body.username, body.day, body.tournament_type, body.event)
    except InvalidTournamentTypeError as e:
        raise HTTPException(400, str(e)) from e
    return _respond(result)


@router.post("/pending/reject", response_model=AdminActionResponse)
async def reject_pending(body: PendingAction, admin: AdminService = Depends(get_admin_service)):
    """Drop a pending winner without registering them."""
    try:
        result = await admin.reject_pending(body.username, body.day, body.tournament_type, body.event)
    except InvalidTournamentTypeError as e:
        raise HTTPException(400, str(e)) from e
    return _respond(result)
