"""Construction tracker API: FastAPI entry point.

Registers middleware, error handlers, routers, and lifecycle hooks. The
construction vertical mounts its task router under
/api/projects/{project_id}/tasks.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import RequestContextMiddleware
from core.database import close_db, init_db
from core.errors import register_exception_handlers
from core.logging_setup import setup_logging

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    setup_logging(level="DEBUG" if DEBUG else None)

    from verticals.construction.billing import build_billing_trigger
    from verticals.construction.config import config
    from verticals.construction.service import set_event_bus
    from verticals.construction.subscribers import build_event_bus

    if config.auto_create_tables:
        await init_db()

    billing = build_billing_trigger(config.billing)
    set_event_bus(build_event_bus(billing))

    logger.info("Construction tracker API started (version %s)", VERSION)
    yield
    if hasattr(billing, "drain"):
        await billing.drain()
    await close_db()
    logger.info("Construction tracker API shutting down")


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Construction Tracker",
    description="Project task, dependency and progress tracking for construction projects",
    version=VERSION,
    lifespan=lifespan,
    debug=DEBUG,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request id + access log
app.add_middleware(RequestContextMiddleware)

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from verticals.construction.router import router as construction_router  # noqa: E402

app.include_router(
    construction_router,
    prefix="/api/projects/{project_id}/tasks",
    tags=["Tasks"],
)


# ---------------------------------------------------------------------------
# Health & root
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "healthy", "version": VERSION}


@app.get("/")
async def root():
    return {
        "name": "Construction Tracker",
        "version": VERSION,
        "docs": "/docs",
        "verticals": ["construction"],
        "description": "Task and dependency tracking for construction projects",
    }
