"""Tournament START/STOP control, polled by the game client."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from standings.errors import InvalidStatusError
from standings.services.admin import AdminService
from web.api.deps import get_admin_service
from web.auth import require_admin

router = APIRouter(prefix="/game", tags=["game"])


@router.post("/control", dependencies=[Depends(require_admin)])
async def control_game(request: Request, admin: AdminService = Depends(get_admin_service)):
    """Start or stop the tournament. Body: {"status": "START" | "STOP"}; anything else is a 400."""
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON")
    status = body.get("status") if isinstance(body, dict) else None
    try:
        status = await admin.set_game_status(status)
    except InvalidStatusError as e:
        raise HTTPException(400, str(e)) from e
    return {"ok": True, "status": status}


@router.get("/status")
async def game_status(admin: AdminService = Depends(get_admin_service)):
    """Current status; read from storage on every call and never cached by clients."""
    status = await admin.get_game_status()
    return JSONResponse(content={"status": status}, headers={"Cache-Control": "no-store"})
