"""Storage contract shared by the SQL and flat-file backends."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from standings.models import PendingWinner, Player


@dataclass
class PlayerIncrement:
    player_id: str
    wins: int = 0
    points: int = 0


@dataclass
class PendingIncrement:
    username: str
    day: str
    tournament_type: str
    event: str
    wins: int = 0
    points: int = 0


@dataclass
class ResultPlan:
    """Every change one webhook delivery makes. Applied all-or-nothing by apply_results."""

    player_increments: list[PlayerIncrement] = field(default_factory=list)
    new_players: list[Player] = field(default_factory=list)
    pending_increments: list[PendingIncrement] = field(default_factory=list)
    delivery_key: Optional[str] = None
    summary: Optional[dict] = None

    @property
    def is_empty(self) -> bool:
        return not (self.player_increments or self.new_players or self.pending_increments)


class StorageAdapter(ABC):
    """Persistence for players, pending winners, the game status flag and webhook deliveries.

    Partition filters (day, tournament_type, event) are optional everywhere; None means "any".
    Username matching is case-insensitive.
    """

    async def init(self) -> None:
        """Prepare the backing store (create tables, directories)."""

    async def close(self) -> None:
        """Release connections."""

    # --- Players ---

    @abstractmethod
    async def get_players(
        self,
        day: Optional[str] = None,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
    ) -> list[Player]: ...

    @abstractmethod
    async def get_player(self, player_id: str) -> Optional[Player]: ...

    @abstractmethod
    async def add_player(self, player: Player) -> Player: ...

    @abstractmethod
    async def update_player(self, player_id: str, **fields) -> None:
        """Overwrite the given fields. Unknown ids are ignored."""

    @abstractmethod
    async def increment_player(self, player_id: str, wins: int = 0, points: int = 0) -> Optional[Player]:
        """Add deltas in one step, clamping each counter at 0. Returns the updated player or None."""

    @abstractmethod
    async def delete_player(self, player_id: str) -> bool: ...

    @abstractmethod
    async def players_needing_profile(self, limit: int = 1) -> list[Player]:
        """Players with an unresolved profile or no avatar.

        Never-checked players come first (oldest first), then the least recently checked.
        """

    # --- Pending winners ---

    @abstractmethod
    async def get_pending_winners(
        self,
        day: Optional[str] = None,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
    ) -> list[PendingWinner]: ...

    @abstractmethod
    async def get_pending_winner(
        self, username: str, day: str, tournament_type: str, event: str
    ) -> Optional[PendingWinner]: ...

    @abstractmethod
    async def increment_pending_winner(
        self,
        username: str,
        day: str,
        wins: int,
        points: int,
        tournament_type: str,
        event: str,
    ) -> None:
        """Insert the pending winner or add to its counters."""

    @abstractmethod
    async def remove_pending_winner(
        self,
        username: str,
        day: Optional[str] = None,
        tournament_type: Optional[str] = None,
        event: Optional[str] = None,
    ) -> int:
        """Delete matching pending winners. Returns how many were removed."""

    @abstractmethod
    async def convert_pending_winner(self, pending: PendingWinner, player: Player) -> bool:
        """Delete the pending winner and insert ``player`` together.

        Returns False (and inserts nothing) if the pending winner no longer exists.
        """

    # --- Game status ---

    @abstractmethod
    async def get_game_status(self) -> str: ...

    @abstractmethod
    async def set_game_status(self, status: str) -> None: ...

    # --- Webhook results ---

    @abstractmethod
    async def get_delivery(self, key: str) -> Optional[dict]:
        """Stored summary of an applied delivery, or None."""

    @abstractmethod
    async def apply_results(self, plan: ResultPlan) -> None:
        """Apply a whole plan atomically. Raises DuplicateDeliveryError if plan.delivery_key was applied."""
