"""Registered player model."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from standings.models.base import DEFAULT_TOURNAMENT_TYPE, PENDING_PROFILE, Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Player(Base):
    """Participant with a standings record. external_user_id is "pending" until the profile is resolved."""

    __tablename__ = "players"
    __table_args__ = (Index("ix_players_partition", "event", "day", "tournament_type"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    external_user_id: Mapped[str] = mapped_column(String(32), nullable=False, default=PENDING_PROFILE)
    username: Mapped[str] = mapped_column(String(64), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avatar_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    # last time the backfill job tried to resolve this player; None = never
    profile_checked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    day: Mapped[str] = mapped_column(String(32), nullable=False)
    tournament_type: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_TOURNAMENT_TYPE)
    event: Mapped[str] = mapped_column(String(64), nullable=False)

    @classmethod
    def create(cls, **fields) -> "Player":
        """Build a new player with id, timestamps and counters filled in (column defaults only apply on flush)."""
        fields.setdefault("id", _new_id())
        fields.setdefault("created_at", _utcnow())
        fields.setdefault("external_user_id", PENDING_PROFILE)
        fields.setdefault("avatar_url", "")
        fields.setdefault("wins", 0)
        fields.setdefault("points", 0)
        fields.setdefault("tournament_type", DEFAULT_TOURNAMENT_TYPE)
        return cls(**fields)

    @property
    def has_profile(self) -> bool:
        return bool(self.external_user_id) and self.external_user_id != PENDING_PROFILE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_user_id": self.external_user_id,
            "username": self.username,
            "display_name": self.display_name,
            "wins": self.wins,
            "points": self.points,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "profile_checked_at": self.profile_checked_at.isoformat() if self.profile_checked_at else None,
            "day": self.day,
            "tournament_type": self.tournament_type,
            "event": self.event,
        }
