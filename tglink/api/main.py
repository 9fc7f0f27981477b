"""FastAPI entrypoint for the Telegram account linking backend."""
import logging
import os

import psycopg2
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings
from ..db.links import PostgresLinkStore
from .routers import telegram

load_dotenv()


def create_app(settings: Settings | None = None, link_store=None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    if link_store is None and settings.postgres_dsn:
        link_store = PostgresLinkStore(settings.postgres_dsn)

    app = FastAPI(title="Telegram Account Link")
    app.state.settings = settings
    app.state.link_store = link_store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup_event() -> None:
        logger = logging.getLogger("telegram_link")
        logger.info(
            "Link config: bot_token=%s postgres_dsn=%s jwt_secret=%s SESSION_TTL_DAYS=%s",
            "set" if settings.bot_token else "missing",
            "set" if settings.postgres_dsn else "missing",
            "set" if settings.jwt_secret else "missing",
            settings.session_ttl_days,
        )
        if os.getenv("TGLINK_SKIP_SCHEMA", "").strip() == "1":
            return None
        if isinstance(app.state.link_store, PostgresLinkStore):
            try:
                app.state.link_store.ensure_tables()
            except psycopg2.Error:
                logger.exception("Link tables could not be ensured; continuing without them.")
        return None

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    app.include_router(telegram.router, prefix="/api")
    return app


app = create_app()
