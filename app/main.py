"""Application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from app import models  # noqa: F401
from app.config import get_settings
from app.core.runtime import Runtime, build_runtime
from app.db import Base, get_engine
from app.infra.cors import NoContentCORSMiddleware
from app.infra.logging_config import configure_logging, get_logger
from app.routers import chat, health, webhooks

logger = get_logger("main")


def create_app(testing: bool = False, runtime: Optional[Runtime] = None) -> FastAPI:
    """
    Build the FastAPI app. Collaborators are created once here (or injected
    by tests through ``runtime``) and shared through ``app.state``.
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "runtime", None) is None:
            app.state.runtime = build_runtime(settings)
        if not testing and not settings.is_production:
            # Production schema comes from alembic migrations.
            Base.metadata.create_all(bind=get_engine())
        logger.info("%s started (env=%s)", settings.app_name, settings.environment)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.runtime = runtime

    app.add_middleware(
        NoContentCORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(webhooks.router)
    app.include_router(chat.router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=get_settings().port)
