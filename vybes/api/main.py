"""
vybes.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn vybes.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from vybes.api.deps import (  # noqa: E402
    error_body,
    get_catalog,
    get_config,
    get_engine,
    http_status_for,
)
from vybes.api.routes.admin import router as admin_router  # noqa: E402
from vybes.api.routes.progression import router as progression_router  # noqa: E402
from vybes.api.routes.quests import router as quests_router  # noqa: E402
from vybes.api.routes.rewards import router as rewards_router  # noqa: E402
from vybes.api.routes.shop import router as shop_router  # noqa: E402
from vybes.database.engine import init_db  # noqa: E402
from vybes.errors import ProgressionError  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated env var)
      2) ``cors_origins`` in config.yaml, if the file exists
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
    try:
        return list(get_config().cors_origins)
    except FileNotFoundError:
        return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — create tables and seed quests."""
    engine = get_engine()
    init_db(engine, get_catalog(get_config()))
    logger.info("Vybes API started — engine ready (%s)", engine.url.database)
    yield
    logger.info("Vybes API shutting down")


app = FastAPI(
    title="Vybes Progression API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ProgressionError)
async def progression_error_handler(request: Request, exc: ProgressionError):
    if not exc.benign:
        logger.info("%s %s → %s: %s", request.method, request.url.path, type(exc).__name__, exc)
    return JSONResponse(status_code=http_status_for(exc), content=error_body(exc))


# Mount routers
app.include_router(progression_router, prefix="/api")
app.include_router(rewards_router, prefix="/api")
app.include_router(quests_router, prefix="/api")
app.include_router(shop_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
