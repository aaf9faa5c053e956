"""External user-profile API client (user search, avatar headshots) with retry and caching."""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional

import httpx

import config
from standings.models.base import PENDING_PROFILE

logger = logging.getLogger("standings.profile_api")

SEARCH_TIMEOUT = 30.0
AVATAR_TIMEOUT = 20.0
BATCH_TIMEOUT = 20.0
SEARCH_LIMIT = 10
AVATAR_SIZE = "420x420"

CACHE_TTL = 300  # 5 minutes

# Backoff schedules (seconds), indexed by the zero-based attempt that failed
RATE_LIMIT_BASE, RATE_LIMIT_CAP = 5.0, 20.0
SERVER_ERROR_BASE, SERVER_ERROR_CAP = 2.0, 8.0
AVATAR_BACKOFF_STEP = 2.0


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    display_name: str


class LookupFailure(str, enum.Enum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class UserLookup:
    profile: Optional[Profile] = None
    failure: Optional[LookupFailure] = None


def server_error_backoff(attempt: int) -> float:
    return min(SERVER_ERROR_BASE * 2**attempt, SERVER_ERROR_CAP)


def rate_limit_backoff(attempt: int, retry_after: Optional[str] = None) -> float:
    """Larger of the server's Retry-After (seconds) and our own exponential schedule."""
    delay = min(RATE_LIMIT_BASE * 2**attempt, RATE_LIMIT_CAP)
    if retry_after:
        try:
            delay = max(delay, float(int(retry_after)))
        except ValueError:
            pass  # HTTP-date form; keep our schedule
    return delay


def is_resolvable_id(profile_id: Optional[str]) -> bool:
    return bool(profile_id) and profile_id != PENDING_PROFILE and str(profile_id).isdigit()


def _pick_candidate(candidates: list, name: str) -> Optional[Profile]:
    """Exact case-insensitive name match, else the first candidate."""
    valid = [c for c in candidates if isinstance(c, dict) and c.get("id") is not None]
    if not valid:
        return None
    wanted = name.lower()
    chosen = next((c for c in valid if str(c.get("name", "")).lower() == wanted), valid[0])
    canonical = chosen.get("name") or name
    return Profile(
        id=str(chosen["id"]),
        name=canonical,
        display_name=chosen.get("displayName") or canonical,
    )


class ProfileAPIService:
    """Async profile API service with caching. Lookups never raise; failures come back as None."""

    def __init__(
        self,
        search_url: str = config.PROFILE_SEARCH_URL,
        avatar_url: str = config.PROFILE_AVATAR_URL,
        batch_url: str = config.PROFILE_BATCH_URL,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._search_url = search_url
        self._avatar_url = avatar_url
        self._batch_url = batch_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(headers={"User-Agent": config.PROFILE_USER_AGENT})
        self._sleep = sleep
        self._cache: dict[str, tuple[Profile, float]] = {}

    async def close(self) -> None:
        """Close the HTTP client (only if we created it)."""
        if self._owns_client:
            await self._client.aclose()

    def _cached(self, name: str) -> Optional[Profile]:
        key = name.lower()
        if key in self._cache:
            profile, ts = self._cache[key]
            if time.time() - ts < CACHE_TTL:
                return profile
            del self._cache[key]
        return None

    async def resolve_user(self, name: str, max_attempts: int = 3) -> Optional[Profile]:
        """Resolve a typed name to a profile. None if not found or the API stayed unavailable."""
        return (await self.lookup_user(name, max_attempts)).profile

    async def lookup_user(self, name: str, max_attempts: int = 3) -> UserLookup:
        """Like resolve_user, but also says why a lookup failed."""
        cached = self._cached(name)
        if cached:
            return UserLookup(profile=cached)

        failure = LookupFailure.NOT_FOUND
        for attempt in range(max_attempts):
            last = attempt == max_attempts - 1
            delay = server_error_backoff(attempt)
            try:
                r = await self._client.get(
                    self._search_url,
                    params={"keyword": name, "limit": SEARCH_LIMIT},
                    timeout=SEARCH_TIMEOUT,
                )
            except httpx.TimeoutException:
                failure = LookupFailure.TIMEOUT
                logger.warning("Profile search timed out for %s (attempt %d/%d)", name, attempt + 1, max_attempts)
            except httpx.TransportError as e:
                failure = LookupFailure.UNAVAILABLE
                logger.warning("Profile search failed for %s (attempt %d/%d): %s", name, attempt + 1, max_attempts, e)
            else:
                if r.status_code == 429:
                    failure = LookupFailure.RATE_LIMITED
                    delay = rate_limit_backoff(attempt, r.headers.get("Retry-After"))
                    logger.warning(
                        "Profile API rate limit for %s (attempt %d/%d), backing off %.1fs",
                        name, attempt + 1, max_attempts, delay,
                    )
                elif r.status_code >= 500:
                    failure = LookupFailure.UNAVAILABLE
                    logger.warning("Profile API error %d for %s (attempt %d/%d)", r.status_code, name, attempt + 1, max_attempts)
                elif r.status_code >= 400:
                    logger.warning("Profile API rejected search for %s: %d", name, r.status_code)
                    return UserLookup(failure=LookupFailure.NOT_FOUND)
                else:
                    try:
                        body = r.json()
                    except ValueError:
                        body = None
                    candidates = body.get("data") if isinstance(body, dict) else None
                    profile = _pick_candidate(candidates or [], name)
                    if profile:
                        self._cache[name.lower()] = (profile, time.time())
                        return UserLookup(profile=profile)
                    failure = LookupFailure.NOT_FOUND
            if not last:
                await self._sleep(delay)
        logger.info("No profile for %s after %d attempt(s): %s", name, max_attempts, failure.value)
        return UserLookup(failure=failure)

    async def resolve_avatar(self, profile_id: str, max_attempts: int = 2) -> Optional[str]:
        """Headshot URL for one profile, or None."""
        if not is_resolvable_id(profile_id):
            return None
        for attempt in range(max_attempts):
            if attempt > 0:
                await self._sleep(AVATAR_BACKOFF_STEP * attempt)
            try:
                r = await self._client.get(
                    self._avatar_url,
                    params={"userIds": profile_id, "size": AVATAR_SIZE, "format": "Png", "isCircular": "false"},
                    timeout=AVATAR_TIMEOUT,
                )
            except httpx.TransportError as e:
                logger.warning("Avatar fetch failed for %s (attempt %d/%d): %s", profile_id, attempt + 1, max_attempts, e)
                continue
            if r.status_code >= 500:
                logger.warning("Avatar API error %d for %s (attempt %d/%d)", r.status_code, profile_id, attempt + 1, max_attempts)
                continue
            if r.status_code >= 400:
                return None
            try:
                data = r.json().get("data") or []
            except (ValueError, AttributeError):
                return None
            if data and isinstance(data[0], dict):
                return data[0].get("imageUrl") or None
            return None
        return None

    async def resolve_avatars_batch(self, profile_ids: Iterable[str]) -> dict[str, str]:
        """Headshot URLs for many profiles in one call. Best-effort: missing entries are just absent."""
        ids = [i for i in dict.fromkeys(profile_ids) if is_resolvable_id(i)]
        if not ids:
            return {}
        payload = [
            {
                "requestId": i,
                "targetId": int(i),
                "type": "AvatarHeadShot",
                "size": AVATAR_SIZE,
                "format": "Png",
                "isCircular": False,
            }
            for i in ids
        ]
        try:
            r = await self._client.post(self._batch_url, json=payload, timeout=BATCH_TIMEOUT)
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Batch avatar fetch failed for %d profile(s): %s", len(ids), e)
            return {}
        urls: dict[str, str] = {}
        items = body.get("data") if isinstance(body, dict) else None
        for item in items or []:
            if isinstance(item, dict) and item.get("state") == "Completed" and item.get("imageUrl"):
                urls[str(item.get("targetId"))] = item["imageUrl"]
        return urls
