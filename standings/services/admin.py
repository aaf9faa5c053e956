"""Operator actions: register/delete players, adjust counters, approve pending winners, game control.

Expected failures come back as an AdminResult with an error code and a message an
operator can act on; only storage failures raise.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Optional

from standings.errors import InvalidStatusError
from standings.models import PendingWinner, Player
from standings.models.game_setting import GAME_STATUSES
from standings.services.profile_api import LookupFailure, Profile, ProfileAPIService, UserLookup
from standings.services.schedule import classify_day, classify_tournament_type, resolve_event
from standings.storage import StorageAdapter

logger = logging.getLogger("standings.admin")


class AdminError(str, enum.Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    PROFILE_UNRESOLVABLE = "profile_unresolvable"
    TIMEOUT = "timeout"
    ALREADY_REGISTERED = "already_registered"


@dataclass
class AdminResult:
    ok: bool
    message: str
    error: Optional[AdminError] = None
    player: Optional[Player] = None

    @classmethod
    def success(cls, message: str, player: Optional[Player] = None) -> "AdminResult":
        return cls(ok=True, message=message, player=player)

    @classmethod
    def failure(cls, error: AdminError, message: str) -> "AdminResult":
        return cls(ok=False, message=message, error=error)


def _lookup_failure(name: str, lookup: UserLookup) -> AdminResult:
    if lookup.failure in (LookupFailure.TIMEOUT, LookupFailure.RATE_LIMITED, LookupFailure.UNAVAILABLE):
        return AdminResult.failure(
            AdminError.TIMEOUT,
            f"The profile service did not answer in time while looking up {name!r} "
            f"({lookup.failure.value.replace('_', ' ')}). Wait a minute and try again.",
        )
    return AdminResult.failure(
        AdminError.PROFILE_UNRESOLVABLE,
        f"Could not find user {name!r}. Verify the spelling and try again.",
    )


def _registered_name(typed: str, profile: Profile) -> str:
    """Use the canonical spelling only when it is the same name, so later results still match."""
    return profile.name if profile.name.lower() == typed.lower() else typed


class AdminService:
    def __init__(self, storage: StorageAdapter, profiles: ProfileAPIService, profile_attempts: int = 3):
        self.storage = storage
        self.profiles = profiles
        self.profile_attempts = profile_attempts

    async def _find_registered(self, username: str, day: str, tournament_type: str, event: str) -> Optional[Player]:
        wanted = username.lower()
        players = await self.storage.get_players(day, tournament_type, event)
        return next((p for p in players if p.username.lower() == wanted), None)

    # --- Counters ---

    async def _adjust(self, player_id: str, wins: int = 0, points: int = 0) -> AdminResult:
        player = await self.storage.increment_player(player_id, wins=wins, points=points)
        if not player:
            return AdminResult.failure(AdminError.NOT_FOUND, "Player not found. It may have been deleted.")
        logger.info("Adjusted %s: wins %+d, points %+d -> %d/%d", player.username, wins, points, player.wins, player.points)
        return AdminResult.success(f"{player.username}: {player.wins} wins, {player.points} points", player)

    async def adjust_wins(self, player_id: str, delta: int) -> AdminResult:
        return await self._adjust(player_id, wins=delta)

    async def adjust_points(self, player_id: str, delta: int) -> AdminResult:
        return await self._adjust(player_id, points=delta)

    # --- Players ---

    async def add_player(
        self,
        username: str,
        day: Optional[str] = None,
        event: Optional[str] = None,
        tournament_type: Optional[str] = None,
    ) -> AdminResult:
        """Register a player after resolving their profile. Accrued pending results for the same name carry over."""
        name = (username or "").strip()
        if not name:
            return AdminResult.failure(AdminError.INVALID_INPUT, "Enter a username.")
        day = classify_day(day)
        tournament_type = classify_tournament_type(day, tournament_type)
        event = resolve_event(event)

        if await self._find_registered(name, day, tournament_type, event):
            return AdminResult.failure(
                AdminError.ALREADY_REGISTERED, f"{name} is already registered for {day} ({tournament_type})."
            )
        lookup = await self.profiles.lookup_user(name, self.profile_attempts)
        if not lookup.profile:
            return _lookup_failure(name, lookup)
        profile = lookup.profile
        username = _registered_name(name, profile)
        if username != name and await self._find_registered(username, day, tournament_type, event):
            return AdminResult.failure(
                AdminError.ALREADY_REGISTERED, f"{username} is already registered for {day} ({tournament_type})."
            )

        avatar_url = await self.profiles.resolve_avatar(profile.id) or ""
        pending = await self.storage.get_pending_winner(name, day, tournament_type, event)
        player = Player.create(
            username=username,
            display_name=profile.display_name,
            external_user_id=profile.id,
            avatar_url=avatar_url,
            wins=pending.wins if pending else 0,
            points=pending.points if pending else 0,
            day=day,
            tournament_type=tournament_type,
            event=event,
        )
        if not (pending and await self.storage.convert_pending_winner(pending, player)):
            player.wins = player.points = 0
            await self.storage.add_player(player)
        logger.info("Registered %s (%s) for %s/%s/%s", player.username, profile.id, event, day, tournament_type)
        return AdminResult.success(f"Added {player.display_name or player.username}.", player)

    async def delete_player(self, player_id: str) -> AdminResult:
        if not await self.storage.delete_player(player_id):
            return AdminResult.failure(AdminError.NOT_FOUND, "Player not found. It may already be deleted.")
        logger.info("Deleted player %s", player_id)
        return AdminResult.success("Player deleted.")

    # --- Pending winners ---

    async def approve_pending(
        self,
        username: str,
        day: str,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
    ) -> AdminResult:
        """Turn a pending winner into a registered player, keeping accrued wins and points."""
        day = classify_day(day)
        tournament_type = classify_tournament_type(day, tournament_type)
        event = resolve_event(event)
        pending = await self.storage.get_pending_winner(username, day, tournament_type, event)
        if not pending:
            return self._pending_not_found(username, day, tournament_type)

        existing = await self._find_registered(pending.username, day, tournament_type, event)
        if existing:
            return await self._merge_into(existing, pending)

        lookup = await self.profiles.lookup_user(pending.username, self.profile_attempts)
        if not lookup.profile:
            return _lookup_failure(pending.username, lookup)
        profile = lookup.profile
        avatar_url = await self.profiles.resolve_avatar(profile.id) or ""
        player = Player.create(
            username=_registered_name(pending.username, profile),
            display_name=profile.display_name,
            external_user_id=profile.id,
            avatar_url=avatar_url,
            wins=pending.wins,
            points=pending.points,
            day=day,
            tournament_type=tournament_type,
            event=event,
        )
        if not await self.storage.convert_pending_winner(pending, player):
            return self._pending_not_found(username, day, tournament_type)
        logger.info("Approved pending winner %s with %d wins, %d points", player.username, player.wins, player.points)
        return AdminResult.success(f"Approved {player.display_name or player.username}.", player)

    async def _merge_into(self, player: Player, pending: PendingWinner) -> AdminResult:
        removed = await self.storage.remove_pending_winner(
            pending.username, pending.day, pending.tournament_type, pending.event
        )
        if not removed:
            return self._pending_not_found(pending.username, pending.day, pending.tournament_type)
        updated = await self.storage.increment_player(player.id, wins=pending.wins, points=pending.points)
        logger.info("Merged pending %s into registered player %s", pending.username, player.id)
        return AdminResult.success(f"{player.username} was already registered; merged pending results.", updated)

    async def reject_pending(
        self,
        username: str,
        day: str,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
    ) -> AdminResult:
        day = classify_day(day)
        tournament_type = classify_tournament_type(day, tournament_type)
        removed = await self.storage.remove_pending_winner(username, day, tournament_type, resolve_event(event))
        if not removed:
            return self._pending_not_found(username, day, tournament_type)
        logger.info("Rejected pending winner %s", username)
        return AdminResult.success(f"Removed pending winner {username}.")

    @staticmethod
    def _pending_not_found(username: str, day: str, tournament_type: str) -> AdminResult:
        return AdminResult.failure(
            AdminError.NOT_FOUND,
            f"No pending winner {username!r} for {day} ({tournament_type}). It may already have been approved.",
        )

    # --- Game status ---

    async def get_game_status(self) -> str:
        return await self.storage.get_game_status()

    async def set_game_status(self, status) -> str:
        if status not in GAME_STATUSES:
            raise InvalidStatusError("Invalid status. Must be START or STOP")
        await self.storage.set_game_status(status)
        logger.info("Game status set to %s", status)
        return status
