"""FastAPI application setup."""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..app import Application
from .routes import (
    create_bot_router,
    create_diagnostics_router,
    create_nudges_router,
    create_settings_router,
    create_smart_groups_router,
    create_statistics_router,
    create_templates_router,
    create_users_router,
)

DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://localhost:5174"


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or Application()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan."""
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Office Nudge API",
        description="Teams bot and admin API for sending nudges",
        version="0.1.0",
        lifespan=lifespan,
    )
    fastapi_app.state.application = application

    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS).split(",")
    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in origins if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    fastapi_app.include_router(create_bot_router(application))
    fastapi_app.include_router(create_templates_router(application))
    fastapi_app.include_router(create_nudges_router(application))
    fastapi_app.include_router(create_statistics_router(application))
    fastapi_app.include_router(create_settings_router(application))
    fastapi_app.include_router(create_diagnostics_router(application))
    fastapi_app.include_router(create_smart_groups_router(application))
    fastapi_app.include_router(create_users_router(application))

    return fastapi_app
