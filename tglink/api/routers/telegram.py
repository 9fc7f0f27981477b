"""Telegram mini app linking endpoints."""
import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...config import ConfigurationError, Settings
from ...services.link_exchange import LinkResult, redeem_link_code
from ...services.session_issuer import issue_session
from ...services.telegram_webapp import verify_init_data

router = APIRouter(prefix="/telegram", tags=["telegram"])
logger = logging.getLogger("telegram_link")


def _as_text(value: Any) -> str:
    # null means absent; other scalars are looked up as their text form.
    return "" if value is None else str(value)


class SessionPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    init_data: str = Field(default="", alias="initData")

    @field_validator("init_data", mode="before")
    @classmethod
    def coerce_init_data(cls, value: Any) -> str:
        return _as_text(value)


class LinkPayload(SessionPayload):
    code: str = ""

    @field_validator("code", mode="before")
    @classmethod
    def coerce_code(cls, value: Any) -> str:
        return _as_text(value)


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _link_store(request: Request):
    store = request.app.state.link_store
    if store is None:
        raise ConfigurationError("Link store is not configured.")
    return store


@router.post("/link")
async def link_telegram(request: Request) -> JSONResponse:
    try:
        payload = LinkPayload.model_validate(await request.json())
        settings = _settings(request)
        settings.require("bot_token", "postgres_dsn")
        store = _link_store(request)

        user = verify_init_data(
            payload.init_data, settings.bot_token, max_age=settings.init_data_max_age
        )
        if user is None:
            return JSONResponse({"ok": False}, status_code=401)

        result = await run_in_threadpool(redeem_link_code, store, user, payload.code)
        if result is not LinkResult.LINKED:
            logger.info("Link code rejected for Telegram user %s: %s", user.id, result.value)
            return JSONResponse({"ok": False}, status_code=400)
        return JSONResponse({"ok": True}, status_code=200)
    except ConfigurationError as exc:
        logger.error("Telegram link is not configured: %s", exc)
        return JSONResponse({"ok": False, "error": "Missing env"}, status_code=500)
    except Exception:
        logger.exception("Telegram link failed.")
        return JSONResponse({"ok": False}, status_code=500)


@router.post("/session")
async def telegram_session(request: Request) -> JSONResponse:
    try:
        payload = SessionPayload.model_validate(await request.json())
        settings = _settings(request)
        settings.require("bot_token", "postgres_dsn", "jwt_secret")
        store = _link_store(request)

        user = verify_init_data(
            payload.init_data, settings.bot_token, max_age=settings.init_data_max_age
        )
        if user is None:
            return JSONResponse({"linked": False}, status_code=401)

        session = await run_in_threadpool(
            issue_session,
            store,
            user,
            settings.jwt_secret,
            settings.session_ttl_days,
        )
        if session is None:
            return JSONResponse({"linked": False}, status_code=200)
        return JSONResponse(
            {
                "linked": True,
                "supabase_user_id": session.supabase_user_id,
                "access_token": session.access_token,
                "refresh_token": "",
            },
            status_code=200,
        )
    except ConfigurationError as exc:
        logger.error("Telegram session is not configured: %s", exc)
        return JSONResponse({"linked": False, "error": "Missing env"}, status_code=500)
    except Exception:
        logger.exception("Telegram session failed.")
        return JSONResponse({"linked": False}, status_code=500)
