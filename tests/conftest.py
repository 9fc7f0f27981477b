"""Shared fixtures: init data signer, in-memory link store, API client."""
from __future__ import annotations

import hashlib
import hmac
import threading
from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from tglink.api.main import create_app
from tglink.config import Settings
from tglink.db.links import LinkCode

BOT_TOKEN = "BOT123"
JWT_SECRET = "super-secret-jwt-token-for-testing-only"
NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
SUPABASE_USER_ID = "7b1d3c9e-0000-4000-8000-00000000abcd"


def sign_fields(fields: dict[str, str], bot_token: str = BOT_TOKEN) -> str:
    """Compute the Telegram hash the way the mini app host does."""
    data_check_string = "\n".join(f"{key}={fields[key]}" for key in sorted(fields))
    secret_key = hashlib.sha256(bot_token.encode("utf-8")).digest()
    return hmac.new(secret_key, data_check_string.encode("utf-8"), hashlib.sha256).hexdigest()


def make_init_data(fields: dict[str, str], bot_token: str = BOT_TOKEN) -> str:
    signed = dict(fields)
    signed["hash"] = sign_fields(fields, bot_token)
    return urlencode(signed)


def default_fields(user_json: str = '{"id":42}') -> dict[str, str]:
    return {"auth_date": "1700000000", "query_id": "Q1", "user": user_json}


class InMemoryLinkStore:
    """Dict-backed link store with the same atomic consume semantics."""

    def __init__(self) -> None:
        self.codes: dict[str, LinkCode] = {}
        self.links: dict[str, str] = {}
        self._lock = threading.Lock()

    def add_code(
        self,
        code: str,
        supabase_user_id: str = SUPABASE_USER_ID,
        expires_at: datetime | None = None,
        used_at: datetime | None = None,
    ) -> LinkCode:
        row = LinkCode(
            code=code,
            supabase_user_id=supabase_user_id,
            expires_at=expires_at or datetime(2099, 1, 1, tzinfo=timezone.utc),
            used_at=used_at,
        )
        self.codes[code] = row
        return row

    def get_link_code(self, code: str) -> LinkCode | None:
        return self.codes.get(code)

    def consume_link_code(self, code: str, telegram_user_id: str, now: datetime) -> str | None:
        with self._lock:
            row = self.codes.get(code)
            if row is None or row.used_at is not None or row.expires_at <= now:
                return None
            self.codes[code] = replace(row, used_at=now)
            self.links[telegram_user_id] = row.supabase_user_id
            return row.supabase_user_id

    def get_linked_user_id(self, telegram_user_id: str) -> str | None:
        return self.links.get(telegram_user_id)


@pytest.fixture
def store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        bot_token=BOT_TOKEN,
        postgres_dsn="postgresql://localhost/test",
        jwt_secret=JWT_SECRET,
    )


@pytest.fixture
def client(settings: Settings, store: InMemoryLinkStore) -> TestClient:
    return TestClient(create_app(settings=settings, link_store=store))
