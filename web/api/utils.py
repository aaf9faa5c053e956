"""Shared API utilities."""
from __future__ import annotations

from fastapi.responses import JSONResponse

from standings.models import Player
from standings.services.admin import AdminError, AdminResult

_ADMIN_ERROR_STATUS = {
    AdminError.INVALID_INPUT: 400,
    AdminError.NOT_FOUND: 404,
    AdminError.ALREADY_REGISTERED: 409,
    AdminError.PROFILE_UNRESOLVABLE: 422,
    AdminError.TIMEOUT: 504,
}


def player_display_name(player: Player | None) -> str:
    """Human-readable name. Falls back to the username until the profile is resolved."""
    if not player:
        return "Unknown Player"
    name = (player.display_name or "").strip()
    return name or player.username


def admin_error_response(result: AdminResult) -> JSONResponse:
    """Failed admin action as JSON the dashboard can show verbatim."""
    return JSONResponse(
        status_code=_ADMIN_ERROR_STATUS.get(result.error, 400),
        content={"ok": False, "error": result.error.value if result.error else None, "message": result.message},
    )
