"""Exceptions raised by the standings services."""
from __future__ import annotations


class StandingsError(Exception):
    """Base class for all standings errors."""


class PayloadError(StandingsError):
    """Webhook body did not match any supported result shape."""


class InvalidStatusError(StandingsError):
    """Game status other than START/STOP."""


class InvalidTournamentTypeError(StandingsError):
    """Tournament type outside the supported set."""


class StorageError(StandingsError):
    """Backing store failed. Surfaced as a server error, never retried here."""


class DuplicateDeliveryError(StandingsError):
    """Webhook delivery key was already applied."""

    def __init__(self, key: str):
        super().__init__(f"Delivery {key!r} already applied")
        self.key = key
