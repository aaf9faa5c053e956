"""Scheduled jobs triggered by an external scheduler (e.g. cron-job.org)."""
from __future__ import annotations

from fastapi import APIRouter, Depends

from standings.services.backfill import backfill_next_player
from standings.services.profile_api import ProfileAPIService
from standings.storage import StorageAdapter
from web.api.deps import get_profile_service, get_storage
from web.auth import require_cron_secret

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.api_route("/fetch-avatars", methods=["GET", "POST"])
async def fetch_avatars(
    storage: StorageAdapter = Depends(get_storage),
    profiles: ProfileAPIService = Depends(get_profile_service),
):
    """Resolve profile and avatar for one player that is missing them."""
    outcome = await backfill_next_player(storage, profiles)
    return outcome.to_dict()
