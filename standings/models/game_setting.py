"""Key/value game settings (holds the tournament START/STOP flag)."""
from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from standings.models.base import Base

GAME_STATUS_KEY = "status"
GAME_STATUSES = ("START", "STOP")
DEFAULT_GAME_STATUS = "STOP"


class GameSetting(Base):
    """Singleton-style settings row per key."""

    __tablename__ = "game_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
