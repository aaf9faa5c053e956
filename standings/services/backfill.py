"""Avatar/profile backfill for players registered before their profile was resolved."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from standings.models import Player
from standings.services.profile_api import ProfileAPIService
from standings.storage import StorageAdapter

logger = logging.getLogger("standings.backfill")


@dataclass
class BackfillOutcome:
    success: bool
    message: str
    processed: int = 0

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message, "processed": self.processed}


async def _fill_player(storage: StorageAdapter, profiles: ProfileAPIService, player: Player) -> BackfillOutcome:
    # stamped on every attempt so an unresolvable player moves to the back of the queue
    updates: dict = {"profile_checked_at": datetime.now(timezone.utc)}
    profile_id = player.external_user_id
    if not player.has_profile:
        profile = await profiles.resolve_user(player.username, 3)
        if not profile:
            await storage.update_player(player.id, **updates)
            logger.warning("Backfill: no profile for %s", player.username)
            return BackfillOutcome(False, f"Failed to fetch user data for {player.username}")
        profile_id = profile.id
        updates.update(external_user_id=profile.id, display_name=profile.display_name)

    avatar_url = await profiles.resolve_avatar(profile_id, 2)
    if avatar_url:
        updates["avatar_url"] = avatar_url
    await storage.update_player(player.id, **updates)
    if not avatar_url:
        logger.warning("Backfill: no avatar for %s (%s)", player.username, profile_id)
        return BackfillOutcome(True, f"Updated user data but failed to fetch avatar for {player.username}", 1)
    logger.info("Backfill: updated %s", player.username)
    return BackfillOutcome(True, f"Successfully processed {player.username}", 1)


async def backfill_next_player(storage: StorageAdapter, profiles: ProfileAPIService) -> BackfillOutcome:
    """Resolve profile and avatar for the oldest player still missing one. One player per call."""
    players = await storage.players_needing_profile(limit=1)
    if not players:
        return BackfillOutcome(True, "No players need avatar fetching")
    player = players[0]
    logger.info("Backfill: processing %s (%s)", player.username, player.id)
    return await _fill_player(storage, profiles, player)


async def fill_new_player_avatars(
    storage: StorageAdapter, profiles: ProfileAPIService, player_ids: Iterable[str]
) -> None:
    """Best-effort background pass after a webhook registered new players."""
    for player_id in player_ids:
        player = await storage.get_player(player_id)
        if player is None or (player.has_profile and player.avatar_url):
            continue
        try:
            await _fill_player(storage, profiles, player)
        except Exception:
            logger.exception("Background avatar fill failed for %s", player_id)
