"""FastAPI application factory.

Lifespan
--------
On startup the app configures logging from ``settings.log_level``, opens a
single SQLite connection (shared across all requests via
``request.app.state.db``) and initialises the schema.  On shutdown it closes
the connection cleanly.

Routers
-------
    /objects   view, page ids, bulk upsert and delete of objects
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from objedit import __version__
from objedit.db import get_connection, init_db
from objedit.logging_config import configure_logging

from objedit.api.routers import objects as objects_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging and open the DB on startup; close it on shutdown."""
    configure_logging()
    conn = get_connection()
    init_db(conn)
    app.state.db = conn
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="objedit API",
        description=(
            "Persistence interface for the objects edit-session engine. "
            "Exposes object fetches, paginated object ids, the bulk upsert "
            "save protocol and object deletion."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(objects_router.router, prefix="/objects", tags=["objects"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn objedit.api.app:app --reload
app = create_app()
