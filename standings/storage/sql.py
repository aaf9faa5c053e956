"""SQLAlchemy storage backend."""
from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy import case, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from standings.errors import DuplicateDeliveryError, StorageError
from standings.models import GameSetting, PendingWinner, Player, WebhookDelivery
from standings.models.base import PENDING_PROFILE, async_session_factory, engine, init_db
from standings.models.game_setting import DEFAULT_GAME_STATUS, GAME_STATUS_KEY
from standings.storage.base import PendingIncrement, ResultPlan, StorageAdapter

logger = logging.getLogger("standings.storage")

_PLAYER_FIELDS = {
    "external_user_id",
    "username",
    "display_name",
    "wins",
    "points",
    "avatar_url",
    "profile_checked_at",
    "day",
    "tournament_type",
    "event",
}


def _partition(stmt, model, day, tournament_type, event):
    if day is not None:
        stmt = stmt.where(model.day == day)
    if tournament_type is not None:
        stmt = stmt.where(model.tournament_type == tournament_type)
    if event is not None:
        stmt = stmt.where(model.event == event)
    return stmt


def _clamped_add(column, delta: int):
    """column + delta, never below 0, evaluated by the database."""
    return case((column + delta < 0, 0), else_=column + delta)


class SQLStorage(StorageAdapter):
    """Storage over the async SQLAlchemy engine configured by DATABASE_URL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory):
        self._session_factory = session_factory

    async def init(self) -> None:
        await init_db()

    async def close(self) -> None:
        await engine.dispose()

    @asynccontextmanager
    async def _session(self):
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as e:
            logger.exception("Database error")
            raise StorageError(f"Database error: {e}") from e

    # --- Players ---

    async def get_players(self, day=None, tournament_type=None, event=None) -> list[Player]:
        async with self._session() as session:
            stmt = _partition(select(Player), Player, day, tournament_type, event)
            result = await session.execute(stmt.order_by(Player.created_at))
            return list(result.scalars().all())

    async def get_player(self, player_id: str) -> Optional[Player]:
        async with self._session() as session:
            return await session.get(Player, player_id)

    async def add_player(self, player: Player) -> Player:
        async with self._session() as session:
            session.add(player)
            await session.commit()
            return player

    async def update_player(self, player_id: str, **fields) -> None:
        values = {k: v for k, v in fields.items() if k in _PLAYER_FIELDS}
        if not values:
            return
        async with self._session() as session:
            await session.execute(
                update(Player)
                .where(Player.id == player_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def increment_player(self, player_id: str, wins: int = 0, points: int = 0) -> Optional[Player]:
        async with self._session() as session:
            result = await session.execute(
                update(Player)
                .where(Player.id == player_id)
                .values(wins=_clamped_add(Player.wins, wins), points=_clamped_add(Player.points, points))
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                return None
            return await session.get(Player, player_id, populate_existing=True)

    async def delete_player(self, player_id: str) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(Player).where(Player.id == player_id))
            await session.commit()
            return result.rowcount > 0

    async def players_needing_profile(self, limit: int = 1) -> list[Player]:
        async with self._session() as session:
            result = await session.execute(
                select(Player)
                .where(or_(Player.external_user_id == PENDING_PROFILE, Player.avatar_url == ""))
                # never-checked players first, then least recently checked
                .order_by(
                    Player.profile_checked_at.is_not(None),
                    Player.profile_checked_at,
                    Player.created_at,
                )
                .limit(limit)
            )
            return list(result.scalars().all())

    # --- Pending winners ---

    async def get_pending_winners(self, day=None, tournament_type=None, event=None) -> list[PendingWinner]:
        async with self._session() as session:
            stmt = _partition(select(PendingWinner), PendingWinner, day, tournament_type, event)
            result = await session.execute(stmt.order_by(PendingWinner.id))
            return list(result.scalars().all())

    async def get_pending_winner(self, username, day, tournament_type, event) -> Optional[PendingWinner]:
        async with self._session() as session:
            stmt = _partition(
                select(PendingWinner).where(func.lower(PendingWinner.username) == username.lower()),
                PendingWinner,
                day,
                tournament_type,
                event,
            )
            result = await session.execute(stmt.limit(1))
            return result.scalar_one_or_none()

    async def _add_pending(self, session: AsyncSession, inc: PendingIncrement) -> None:
        stmt = _partition(
            update(PendingWinner).where(func.lower(PendingWinner.username) == inc.username.lower()),
            PendingWinner,
            inc.day,
            inc.tournament_type,
            inc.event,
        )
        result = await session.execute(
            stmt.values(
                wins=_clamped_add(PendingWinner.wins, inc.wins),
                points=_clamped_add(PendingWinner.points, inc.points),
            ).execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            session.add(
                PendingWinner(
                    username=inc.username,
                    wins=max(0, inc.wins),
                    points=max(0, inc.points),
                    day=inc.day,
                    tournament_type=inc.tournament_type,
                    event=inc.event,
                )
            )

    async def increment_pending_winner(self, username, day, wins, points, tournament_type, event) -> None:
        async with self._session() as session:
            await self._add_pending(
                session,
                PendingIncrement(username, day, tournament_type, event, wins=wins, points=points),
            )
            await session.commit()

    async def remove_pending_winner(self, username, day=None, tournament_type=None, event=None) -> int:
        async with self._session() as session:
            stmt = _partition(
                delete(PendingWinner).where(func.lower(PendingWinner.username) == username.lower()),
                PendingWinner,
                day,
                tournament_type,
                event,
            )
            result = await session.execute(stmt.execution_options(synchronize_session=False))
            await session.commit()
            return result.rowcount

    async def convert_pending_winner(self, pending: PendingWinner, player: Player) -> bool:
        async with self._session() as session:
            result = await session.execute(delete(PendingWinner).where(PendingWinner.id == pending.id))
            if result.rowcount == 0:
                await session.rollback()
                return False
            session.add(player)
            await session.commit()
            return True

    # --- Game status ---

    async def get_game_status(self) -> str:
        async with self._session() as session:
            result = await session.execute(select(GameSetting).where(GameSetting.key == GAME_STATUS_KEY))
            row = result.scalar_one_or_none()
            return row.value if row else DEFAULT_GAME_STATUS

    async def set_game_status(self, status: str) -> None:
        async with self._session() as session:
            result = await session.execute(select(GameSetting).where(GameSetting.key == GAME_STATUS_KEY))
            row = result.scalar_one_or_none()
            if row:
                row.value = status
            else:
                session.add(GameSetting(key=GAME_STATUS_KEY, value=status))
            await session.commit()

    # --- Webhook results ---

    async def get_delivery(self, key: str) -> Optional[dict]:
        async with self._session() as session:
            row = await session.get(WebhookDelivery, key)
            return json.loads(row.summary) if row else None

    async def apply_results(self, plan: ResultPlan) -> None:
        async with self._session() as session:
            if plan.delivery_key:
                session.add(WebhookDelivery(key=plan.delivery_key, summary=json.dumps(plan.summary or {})))
                try:
                    await session.flush()
                except IntegrityError as e:
                    await session.rollback()
                    raise DuplicateDeliveryError(plan.delivery_key) from e
            for inc in plan.player_increments:
                await session.execute(
                    update(Player)
                    .where(Player.id == inc.player_id)
                    .values(
                        wins=_clamped_add(Player.wins, inc.wins),
                        points=_clamped_add(Player.points, inc.points),
                    )
                    .execution_options(synchronize_session=False)
                )
            session.add_all(plan.new_players)
            for inc in plan.pending_increments:
                await self._add_pending(session, inc)
            await session.commit()
