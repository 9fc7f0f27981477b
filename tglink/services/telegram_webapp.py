"""Telegram WebApp init data validation."""
from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
from typing import Mapping
from urllib.parse import parse_qsl

from pydantic import BaseModel

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "username", "photo_url", "language_code")
CLOCK_SKEW_SECONDS = 30


class TelegramUser(BaseModel):
    id: int
    first_name: str | None = None
    last_name: str | None = None
    username: str | None = None
    photo_url: str | None = None
    language_code: str | None = None


def parse_init_data(init_data: str) -> dict[str, str] | None:
    """Split init data into fields, or None when a key is repeated."""
    fields: dict[str, str] = {}
    for key, value in parse_qsl(init_data, keep_blank_values=True):
        if key in fields:
            logger.info("Init data rejected: duplicate key %r.", key)
            return None
        fields[key] = value
    return fields


def build_data_check_string(fields: Mapping[str, str]) -> str:
    pairs = [f"{key}={value}" for key, value in sorted(fields.items()) if key != "hash"]
    return "\n".join(pairs)


def derive_secret_key(bot_token: str) -> bytes:
    return hashlib.sha256(bot_token.encode("utf-8")).digest()


def compute_hash(fields: Mapping[str, str], bot_token: str) -> str:
    data_check_string = build_data_check_string(fields)
    return hmac.new(
        derive_secret_key(bot_token), data_check_string.encode("utf-8"), hashlib.sha256
    ).hexdigest()


def _hash_matches(fields: Mapping[str, str], bot_token: str) -> bool:
    received_hash = fields.get("hash")
    if not received_hash:
        return False
    calculated_hash = compute_hash(fields, bot_token)
    return hmac.compare_digest(calculated_hash.encode("ascii"), received_hash.encode("utf-8"))


def validate_init_data(init_data: str, bot_token: str) -> bool:
    if not init_data or not bot_token:
        return False
    fields = parse_init_data(init_data)
    if fields is None:
        return False
    return _hash_matches(fields, bot_token)


def parse_telegram_user(fields: Mapping[str, str]) -> TelegramUser | None:
    user_json = fields.get("user")
    if not user_json:
        return None
    try:
        user = json.loads(user_json)
    except ValueError:
        return None
    if not isinstance(user, dict):
        return None
    user_id = user.get("id")
    # bool is an int subclass; true/false are not identifiers.
    if not isinstance(user_id, int) or isinstance(user_id, bool) or not user_id:
        return None
    # Profile fields are informational; non-string values are dropped.
    profile = {
        name: user[name]
        for name in PROFILE_FIELDS
        if isinstance(user.get(name), str)
    }
    return TelegramUser(id=user_id, **profile)


def _is_fresh(fields: Mapping[str, str], max_age: int, now: float) -> bool:
    try:
        auth_date = int(fields.get("auth_date", ""))
    except ValueError:
        return False
    if auth_date < 0 or auth_date > now + CLOCK_SKEW_SECONDS:
        return False
    return now - auth_date <= max_age


def verify_init_data(
    init_data: str,
    bot_token: str,
    max_age: int | None = None,
    now: float | None = None,
) -> TelegramUser | None:
    """Authenticate init data and return the embedded user.

    Returns None for any failure: empty payload, repeated keys, missing or
    wrong hash, stale ``auth_date`` (only when ``max_age`` is given), or a
    ``user`` field without a usable id.
    """
    if not init_data or not bot_token:
        return None
    fields = parse_init_data(init_data)
    if fields is None:
        return None
    if not _hash_matches(fields, bot_token):
        logger.info("Init data rejected: hash mismatch.")
        return None
    if max_age:
        current = time.time() if now is None else now
        if not _is_fresh(fields, max_age, current):
            logger.info("Init data rejected: auth_date too old.")
            return None
    user = parse_telegram_user(fields)
    if user is None:
        logger.info("Init data rejected: no usable user record.")
    return user
