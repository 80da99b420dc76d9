"""Edge proxy app."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI

from calmly import __version__
from calmly.common.error_envelope import register_error_handlers
from calmly.config import runtime_config
from calmly.proxy.forwarder import UpstreamForwarder, get_forwarder
from calmly.proxy.routes import router as proxy_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime_config.configure_logging()
    logger.info("Edge proxy starting (%s)", runtime_config.config_snapshot())
    yield


def create_app(forwarder: Optional[UpstreamForwarder] = None) -> FastAPI:
    app = FastAPI(title="Calmly Edge Proxy", version=__version__, lifespan=lifespan)
    register_error_handlers(app)
    # None: get_forwarder builds one from config on first use
    app.state.forwarder = forwarder
    app.include_router(proxy_router)

    @app.get("/health")
    async def health(upstream: UpstreamForwarder = Depends(get_forwarder)) -> dict:
        return {"status": "ok", "backend": upstream.base_url}

    return app


app = create_app()
