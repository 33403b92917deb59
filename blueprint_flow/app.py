"""Application factory for the strategic blueprint FastAPI backend."""

import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .logging_utils import configure_logging
from .routers import blueprint


DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]


def _resolve_allowed_origins() -> list[str]:
    """Return allowed origins, optionally sourced from an env override."""

    raw = os.getenv("BLUEPRINT_ALLOWED_ORIGINS")
    if raw:
        return [origin.strip() for origin in raw.split(",") if origin.strip()]
    return DEFAULT_ALLOWED_ORIGINS


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""
    if os.getenv("BLUEPRINT_LOG_JSON"):
        configure_logging(os.getenv("BLUEPRINT_LOG_LEVEL", "INFO").upper())
    app = FastAPI(
        title="Strategic Blueprint Backend",
        version="0.1.0",
        description="Research pipeline that turns a business context into a strategic blueprint.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_allowed_origins(),
        allow_origin_regex=r"http://localhost:\d+$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = get_settings()
    app.include_router(blueprint.router)
    return app


app = create_app()
