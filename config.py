"""Configuration for the tournament leaderboard service."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Storage: "sql" (SQLAlchemy, default) or "file" (JSON files in DATA_DIR)
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql").strip().lower()
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'standings.db'}",
)
DATA_DIR = Path(os.getenv("DATA_DIR", str(Path(__file__).parent / "data")))

# Tournament partitioning
CURRENT_EVENT = os.getenv("CURRENT_EVENT", "rvnc-jan-24th")
TIMEZONE = os.getenv("TIMEZONE", "")  # IANA name, e.g. "America/New_York"; empty = host local time

# What the webhook does with names that have no registered player: pending, eager, skip
UNMATCHED_POLICY = os.getenv("UNMATCHED_POLICY", "pending").strip().lower()

# External user-profile API
PROFILE_SEARCH_URL = os.getenv("PROFILE_SEARCH_URL", "https://users.roblox.com/v1/users/search")
PROFILE_AVATAR_URL = os.getenv(
    "PROFILE_AVATAR_URL", "https://thumbnails.roblox.com/v1/users/avatar-headshot"
)
PROFILE_BATCH_URL = os.getenv("PROFILE_BATCH_URL", "https://thumbnails.roblox.com/v1/batch")
PROFILE_USER_AGENT = os.getenv(
    "PROFILE_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
)

# Shared secrets. Empty = check disabled.
CRON_SECRET = os.getenv("CRON_SECRET", "")  # avatar backfill job
WEBHOOK_SECRET = os.getenv("WEBHOOK_SECRET", "")  # game client -> /webhook/result
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")  # admin mutations and game control

# Web server
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
