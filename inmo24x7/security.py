from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import logging
from fastapi import Depends, HTTPException, Request, status

from supabase import Client, create_client

from inmo24x7.config import SOURCE_TYPES, Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    tenant_id: Optional[str] = None
    source_type: str = "web_chat"


@lru_cache(maxsize=1)
def get_auth_client() -> Optional[Client]:
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_service_role_key:
        logger.warning("auth.not_configured SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing")
        return None
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def _bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization") or ""
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header[len("Bearer ") :].strip()
    return token or None


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> Optional[AuthenticatedUser]:
    """Verify the bearer token with Supabase auth.

    Returns None when auth is disabled (``REQUIRE_AUTH=false``); routes then
    fall back to the default tenant and source.
    """
    if not settings.require_auth:
        return None

    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - No token provided")

    client = get_auth_client()
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication service not configured"
        )

    try:
        response = await asyncio.to_thread(client.auth.get_user, token)
    except Exception as exc:  # noqa: BLE001
        logger.warning("auth.verify_failed err=%s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - Invalid token") from exc

    user = getattr(response, "user", None)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - Invalid token")

    # tenant and channel come from JWT claims, user metadata first
    metadata = user.user_metadata or {}
    app_metadata = user.app_metadata or {}
    source_type = metadata.get("source_type") or app_metadata.get("source_type") or "web_chat"
    if source_type not in SOURCE_TYPES:
        source_type = "web_chat"
    return AuthenticatedUser(
        id=user.id,
        email=user.email,
        tenant_id=metadata.get("tenant_id") or app_metadata.get("tenant_id"),
        source_type=source_type,
    )


def resolve_tenant(user: Optional[AuthenticatedUser], settings: Settings) -> str:
    if settings.require_auth and (user is None or not user.tenant_id):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized - Authentication required")
    if user is not None and user.tenant_id:
        return user.tenant_id
    logger.info("auth.default_tenant tenant_id=%s", settings.default_tenant_id)
    return settings.default_tenant_id


def resolve_source_type(user: Optional[AuthenticatedUser], settings: Settings) -> str:
    if user is not None and user.source_type:
        return user.source_type
    return settings.default_source_type
