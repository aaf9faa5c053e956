"""Game-client webhook: match results in, standings updated."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request

from standings.errors import InvalidTournamentTypeError, PayloadError
from standings.services.backfill import fill_new_player_avatars
from standings.services.ingestion import ResultIngestionService
from standings.services.profile_api import ProfileAPIService
from standings.storage import StorageAdapter
from web.api.deps import get_ingestion_service, get_profile_service, get_storage
from web.auth import require_webhook_secret

logger = logging.getLogger("standings.ingest")

router = APIRouter(tags=["webhook"])


@router.post("/webhook/result", dependencies=[Depends(require_webhook_secret)])
async def receive_result(
    request: Request,
    background_tasks: BackgroundTasks,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    ingestion: ResultIngestionService = Depends(get_ingestion_service),
    storage: StorageAdapter = Depends(get_storage),
    profiles: ProfileAPIService = Depends(get_profile_service),
):
    """Apply one result: {"username"}, {"first".."tenth"} or {"results": [{"username", "rank"}]}.

    Optional body fields day, tournament_type, event override auto-detection; an
    Idempotency-Key header (or delivery_id field) makes redelivery a no-op.
    """
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Invalid JSON")
    try:
        summary = await ingestion.ingest(body, delivery_key=idempotency_key)
    except (PayloadError, InvalidTournamentTypeError) as e:
        logger.info("Rejected webhook payload: %s", e)
        raise HTTPException(400, str(e)) from e
    if summary.new_player_ids:
        background_tasks.add_task(fill_new_player_avatars, storage, profiles, summary.new_player_ids)
    return summary.to_dict()
