"""Issue backend sessions for already linked Telegram users."""
from __future__ import annotations

import logging
from datetime import datetime

import psycopg2
from pydantic import BaseModel

from ..db.links import PostgresLinkStore
from .auth_tokens import build_session_token
from .telegram_webapp import TelegramUser

logger = logging.getLogger(__name__)


class IssuedSession(BaseModel):
    supabase_user_id: str
    access_token: str
    expires_at: datetime


def issue_session(
    store: PostgresLinkStore,
    user: TelegramUser,
    jwt_secret: str,
    ttl_days: int = 30,
    now: datetime | None = None,
) -> IssuedSession | None:
    """Return a session for the linked account, or None when not linked."""
    try:
        supabase_user_id = store.get_linked_user_id(str(user.id))
    except psycopg2.Error as exc:
        logger.warning("Link lookup failed for Telegram user %s: %s", user.id, exc)
        return None
    if not supabase_user_id:
        return None

    token = build_session_token(supabase_user_id, jwt_secret, ttl_days=ttl_days, now=now)
    return IssuedSession(
        supabase_user_id=supabase_user_id,
        access_token=token["token"],
        expires_at=token["expires_at"],
    )
