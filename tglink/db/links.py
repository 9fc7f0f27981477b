"""Postgres persistence for linking codes and Telegram account links."""
from __future__ import annotations

import secrets
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterator

import psycopg2


@dataclass(frozen=True)
class LinkCode:
    code: str
    supabase_user_id: str
    expires_at: datetime
    used_at: datetime | None = None


class PostgresLinkStore:
    def __init__(self, dsn: str) -> None:
        self._dsn = dsn

    @contextmanager
    def _get_connection(self) -> Iterator[psycopg2.extensions.connection]:
        conn = psycopg2.connect(self._dsn)
        try:
            yield conn
        finally:
            conn.close()

    def ensure_tables(self) -> None:
        with self._get_connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS link_codes (
                    code TEXT PRIMARY KEY,
                    supabase_user_id TEXT NOT NULL,
                    expires_at TIMESTAMPTZ NOT NULL,
                    used_at TIMESTAMPTZ,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                );
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS user_links (
                    telegram_user_id TEXT PRIMARY KEY,
                    supabase_user_id TEXT NOT NULL,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                );
                """
            )
            cursor.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_user_links_supabase_user
                ON user_links (supabase_user_id);
                """
            )
            conn.commit()

    def create_link_code(self, supabase_user_id: str, ttl_minutes: int = 10) -> LinkCode:
        code = secrets.token_urlsafe(12)
        expires_at = datetime.now(timezone.utc) + timedelta(minutes=ttl_minutes)
        with self._get_connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO link_codes (code, supabase_user_id, expires_at)
                VALUES (%s, %s, %s);
                """,
                (code, supabase_user_id, expires_at),
            )
            conn.commit()
        return LinkCode(code=code, supabase_user_id=supabase_user_id, expires_at=expires_at)

    def get_link_code(self, code: str) -> LinkCode | None:
        with self._get_connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                SELECT code, supabase_user_id, expires_at, used_at
                FROM link_codes
                WHERE code = %s;
                """,
                (code,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return LinkCode(
            code=row[0],
            supabase_user_id=str(row[1]),
            expires_at=row[2],
            used_at=row[3],
        )

    def consume_link_code(
        self, code: str, telegram_user_id: str, now: datetime
    ) -> str | None:
        """Burn an unused, unexpired code and link it in one transaction.

        Returns the linked Supabase user id, or None when another caller
        already used the code or it expired in the meantime.
        """
        with self._get_connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                UPDATE link_codes
                SET used_at = %s
                WHERE code = %s AND used_at IS NULL AND expires_at > %s
                RETURNING supabase_user_id;
                """,
                (now, code, now),
            )
            row = cursor.fetchone()
            if not row:
                conn.rollback()
                return None
            supabase_user_id = str(row[0])
            cursor.execute(
                """
                INSERT INTO user_links (telegram_user_id, supabase_user_id)
                VALUES (%s, %s)
                ON CONFLICT (telegram_user_id) DO UPDATE
                SET supabase_user_id = EXCLUDED.supabase_user_id,
                    updated_at = NOW();
                """,
                (telegram_user_id, supabase_user_id),
            )
            conn.commit()
        return supabase_user_id

    def get_linked_user_id(self, telegram_user_id: str) -> str | None:
        with self._get_connection() as conn, conn.cursor() as cursor:
            cursor.execute(
                """
                SELECT supabase_user_id
                FROM user_links
                WHERE telegram_user_id = %s;
                """,
                (telegram_user_id,),
            )
            row = cursor.fetchone()
        return str(row[0]) if row and row[0] else None
