"""JWT helpers for backend sessions."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

SESSION_ROLE = "authenticated"
SESSION_AUDIENCE = "authenticated"


def build_session_token(
    subject: str,
    secret: str,
    ttl_days: int = 30,
    now: datetime | None = None,
) -> dict[str, Any]:
    issued_at = now or datetime.now(timezone.utc)
    expires_at = issued_at + timedelta(days=ttl_days)
    payload: dict[str, Any] = {
        "sub": subject,
        "role": SESSION_ROLE,
        "aud": SESSION_AUDIENCE,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, secret, algorithm="HS256")
    return {"token": token, "expires_at": expires_at}


def decode_session_token(token: str, secret: str) -> dict[str, Any]:
    return jwt.decode(
        token,
        secret,
        algorithms=["HS256"],
        audience=SESSION_AUDIENCE,
        options={"require": ["exp", "sub"]},
    )
