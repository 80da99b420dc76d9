"""Backend app: session/history and activity log services."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from calmly import __version__
from calmly.activity.routes import router as activity_router
from calmly.activity.service import get_dispatcher
from calmly.chat.routes import router as chat_router
from calmly.common.error_envelope import register_error_handlers
from calmly.config import runtime_config

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime_config.configure_logging()
    logger.info("Backend starting (%s)", runtime_config.config_snapshot())
    yield
    # Give in-flight completion events a chance before the loop goes away.
    await get_dispatcher().drain()


def create_app() -> FastAPI:
    app = FastAPI(title="Calmly Backend", version=__version__, lifespan=lifespan)
    register_error_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[runtime_config.get_frontend_url()],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.include_router(chat_router)
    app.include_router(activity_router)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "message": "Server is running"}

    return app


app = create_app()
