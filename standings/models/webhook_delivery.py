"""Applied webhook deliveries, keyed by the caller's idempotency key."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from standings.models.base import Base


class WebhookDelivery(Base):
    """One row per applied delivery; summary is the JSON response that was returned."""

    __tablename__ = "webhook_deliveries"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    summary: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
