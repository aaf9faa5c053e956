"""Shared-secret checks for the admin surface, the game-client webhook and the cron job.

Each check is disabled while its secret is unset (local development).
"""
from __future__ import annotations

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

import config

http_bearer = HTTPBearer(auto_error=False)


def _matches(provided: Optional[str], secret: str) -> bool:
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), secret.encode("utf-8"))


def _bearer_token(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


async def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    x_admin_token: Optional[str] = Header(None, alias="X-Admin-Token"),
) -> None:
    """Require ADMIN_TOKEN as Authorization: Bearer or X-Admin-Token (fallback for proxies that strip Authorization)."""
    if not config.ADMIN_TOKEN:
        return
    token = _bearer_token(credentials) or x_admin_token
    if not _matches(token, config.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def require_webhook_secret(
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
) -> None:
    """Require WEBHOOK_SECRET in X-Webhook-Secret from the game client."""
    if not config.WEBHOOK_SECRET:
        return
    if not _matches(x_webhook_secret, config.WEBHOOK_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


async def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    secret: Optional[str] = Query(None),
) -> None:
    """Require CRON_SECRET as Authorization: Bearer or ?secret= (schedulers that cannot set headers)."""
    if not config.CRON_SECRET:
        return
    if not (_matches(_bearer_token(credentials), config.CRON_SECRET) or _matches(secret, config.CRON_SECRET)):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
