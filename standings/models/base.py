"""Database base, session setup and record defaults."""
from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

import config

logger = logging.getLogger("standings.storage")

# Record schema. Bump SCHEMA_VERSION when a field is added and give it a default below.
#   1: username, wins, day missing (saturday-only leaderboard)
#   2: + day, points
#   3: + tournament_type, event
#   4: + profile_checked_at (players)
SCHEMA_VERSION = 4

TOURNAMENT_TYPES = ("all-day", "special")
DEFAULT_TOURNAMENT_TYPE = "all-day"
LEGACY_DAY = "saturday"  # records written before day partitioning existed
PENDING_PROFILE = "pending"  # external_user_id of a player whose profile is unresolved


def record_defaults() -> dict:
    """Values assumed for fields absent from older records."""
    return {
        "day": LEGACY_DAY,
        "tournament_type": DEFAULT_TOURNAMENT_TYPE,
        "event": config.CURRENT_EVENT,
        "wins": 0,
        "points": 0,
    }


def player_defaults() -> dict:
    defaults = record_defaults()
    defaults.update(external_user_id=PENDING_PROFILE, avatar_url="", display_name=None, profile_checked_at=None)
    return defaults


def apply_defaults(record: dict, defaults: dict) -> dict:
    """Fill missing or null fields of a stored record from ``defaults``."""
    out = dict(record)
    for key, value in defaults.items():
        if out.get(key) is None:
            out[key] = value
    return out


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


engine = create_async_engine(
    config.DATABASE_URL,
    echo=False,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# Columns added after schema version 1, per table
_MIGRATIONS = {
    "players": [
        ("day", "VARCHAR(32)"),
        ("points", "INTEGER NOT NULL DEFAULT 0"),
        ("tournament_type", "VARCHAR(16)"),
        ("event", "VARCHAR(64)"),
        ("profile_checked_at", "DATETIME"),
    ],
    "pending_winners": [
        ("day", "VARCHAR(32)"),
        ("points", "INTEGER NOT NULL DEFAULT 0"),
        ("tournament_type", "VARCHAR(16)"),
        ("event", "VARCHAR(64)"),
    ],
}


def _existing_columns(sync_conn) -> dict[str, set[str]]:
    insp = inspect(sync_conn)
    return {table: {c["name"] for c in insp.get_columns(table)} for table in _MIGRATIONS}


async def _run_migrations(conn) -> None:
    """Add columns missing from older databases, then fill nulls with the record defaults."""
    existing = await conn.run_sync(_existing_columns)
    for table, columns in _MIGRATIONS.items():
        for column, ddl in columns:
            if column not in existing[table]:
                logger.info("Migrating %s: adding column %s", table, column)
                await conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
        for column, value in record_defaults().items():
            await conn.execute(
                text(f"UPDATE {table} SET {column} = :value WHERE {column} IS NULL"),
                {"value": value},
            )


async def init_db() -> None:
    """Create all tables and run migrations."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await _run_migrations(conn)
