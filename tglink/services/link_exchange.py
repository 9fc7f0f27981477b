"""Redeem one-time linking codes for a verified Telegram user."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum

from ..db.links import PostgresLinkStore
from .telegram_webapp import TelegramUser

logger = logging.getLogger(__name__)


class LinkResult(str, Enum):
    LINKED = "linked"
    NOT_FOUND = "not_found"
    USED = "used"
    EXPIRED = "expired"
    CONFLICT = "conflict"


def redeem_link_code(
    store: PostgresLinkStore,
    user: TelegramUser,
    code: str,
    now: datetime | None = None,
) -> LinkResult:
    code = (code or "").strip()
    if not code:
        return LinkResult.NOT_FOUND
    now = now or datetime.now(timezone.utc)

    row = store.get_link_code(code)
    if row is None:
        return LinkResult.NOT_FOUND
    if row.used_at is not None:
        return LinkResult.USED
    if row.expires_at <= now:
        return LinkResult.EXPIRED

    supabase_user_id = store.consume_link_code(code, str(user.id), now)
    if supabase_user_id is None:
        logger.info("Link code for Telegram user %s lost a concurrent redemption.", user.id)
        return LinkResult.CONFLICT

    logger.info("Linked Telegram user %s to account %s.", user.id, supabase_user_id)
    return LinkResult.LINKED
