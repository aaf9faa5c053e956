"""Pending winner model: named in results but not registered yet."""
from __future__ import annotations

from sqlalchemy import Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from standings.models.base import DEFAULT_TOURNAMENT_TYPE, Base


class PendingWinner(Base):
    """Accrues wins/points until an admin approves (converts to a Player) or rejects it."""

    __tablename__ = "pending_winners"
    __table_args__ = (Index("ix_pending_winners_partition", "event", "day", "tournament_type"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    day: Mapped[str] = mapped_column(String(32), nullable=False)
    tournament_type: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_TOURNAMENT_TYPE)
    event: Mapped[str] = mapped_column(String(64), nullable=False)

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "wins": self.wins,
            "points": self.points,
            "day": self.day,
            "tournament_type": self.tournament_type,
            "event": self.event,
        }
