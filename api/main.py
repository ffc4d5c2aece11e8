"""
FastAPI application for the EdgeFinder API.

Exposes:
- Health check endpoints
- EV-sorted edges across sports
- Per-sport odds slates and per-event consensus overlays
- Injury reports
- Line movement alerts
- Kelly bet sizing
- Manual refresh

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routers import edges, health, injuries, kelly, movements, odds, refresh
from api.state import AppState
from edgefinder import __version__
from edgefinder.betting.odds_converter import OddsError
from edgefinder.data.pipeline import PipelineUnavailableError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Initializes components on startup and cleans up on shutdown.
    """
    logger.info("Starting EdgeFinder API...")

    state = getattr(app.state, "app_state", None) or AppState()
    await state.initialize()
    app.state.app_state = state

    logger.info("EdgeFinder API started successfully")

    yield

    logger.info("Shutting down EdgeFinder API...")
    await state.shutdown()
    logger.info("EdgeFinder API shutdown complete")


async def pipeline_unavailable_handler(request: Request, exc: PipelineUnavailableError):
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "failed_sports": exc.failures},
    )


async def odds_error_handler(request: Request, exc: OddsError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


def create_app(state: Optional[AppState] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        state: Pre-built AppState; one is created from settings on startup
            when omitted
    """
    app = FastAPI(
        title="EdgeFinder API",
        description="Odds aggregation and betting edge detection",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )
    if state is not None:
        app.state.app_state = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PipelineUnavailableError, pipeline_unavailable_handler)
    app.add_exception_handler(OddsError, odds_error_handler)

    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(edges.router, prefix="/api", tags=["Edges"])
    app.include_router(odds.router, prefix="/api", tags=["Odds"])
    app.include_router(injuries.router, prefix="/api", tags=["Injuries"])
    app.include_router(movements.router, prefix="/api", tags=["Movements"])
    app.include_router(kelly.router, prefix="/api", tags=["Kelly"])
    app.include_router(refresh.router, prefix="/api", tags=["Refresh"])

    @app.get("/")
    async def root():
        """Root endpoint points at the API documentation."""
        return {
            "name": "EdgeFinder API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/api/health",
        }

    return app


app = create_app()
