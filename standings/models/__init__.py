"""Database models."""
from standings.models.base import Base, init_db
from standings.models.player import Player
from standings.models.pending_winner import PendingWinner
from standings.models.game_setting import GameSetting
from standings.models.webhook_delivery import WebhookDelivery

__all__ = [
    "Base",
    "Player",
    "PendingWinner",
    "GameSetting",
    "WebhookDelivery",
    "init_db",
]
