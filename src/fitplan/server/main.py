"""
FitPlan FastAPI server main entrypoint.
Handles CORS, error mapping, health and API routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import psutil
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import SETTINGS
from ..db import PersistenceError, close_db, init_db
from ..logging_setup import setup_logging
from ..preferences import PreferenceError
from ..services import PlanGenerationService, build_provider
from ..services.providers import ProviderExhausted
from .routes.ai import router as r_ai
from .routes.plan import router as r_plan


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    try:
        await init_db()
        provider = build_provider(SETTINGS)
        app.state.plan_service = PlanGenerationService(provider)
        logging.info("FastAPI server startup completed (provider=%s)", provider.kind)
    except Exception as e:
        logging.exception("FastAPI startup failed: %s", e)
        raise

    yield

    # Shutdown
    try:
        await app.state.plan_service.provider.aclose()
        await close_db()
        logging.info("FastAPI server shutdown completed")
    except Exception as e:
        logging.exception("FastAPI shutdown failed: %s", e)


app = FastAPI(
    title="FitPlan API",
    description="Weekly workout plan generation",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(PreferenceError)
async def preference_exc_handler(request: Request, exc: PreferenceError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(ProviderExhausted)
async def provider_exc_handler(request: Request, exc: ProviderExhausted) -> JSONResponse:
    logging.error("Generation unavailable for %s: %s", request.url.path, exc)
    return JSONResponse({"error": "ai error"}, status_code=503)


@app.exception_handler(PersistenceError)
async def persistence_exc_handler(request: Request, exc: PersistenceError) -> JSONResponse:
    return JSONResponse({"error": "failed to save plan"}, status_code=500)


@app.exception_handler(Exception)
async def global_exc_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler: log and return a generic error response.
    """
    logging.exception("Unhandled error in %s: %s", request.url, exc)
    return JSONResponse(
        {"ok": False, "error": "internal_error", "message": "Internal server error"},
        status_code=500,
    )


@app.get("/healthz")
async def healthz(request: Request) -> dict:
    """
    Health check endpoint with system status.
    """
    try:
        memory = psutil.virtual_memory()
        cpu_percent = psutil.cpu_percent(interval=0.1)

        service = getattr(request.app.state, "plan_service", None)
        provider_kind = service.provider.kind if service else "uninitialized"

        is_healthy = (
            memory.percent < 90  # Memory usage under 90%
            and cpu_percent < 95  # CPU usage under 95%
            and service is not None
        )

        return {
            "ok": is_healthy,
            "status": "healthy" if is_healthy else "degraded",
            "timestamp": datetime.now(UTC).isoformat(),
            "system": {
                "memory_percent": round(memory.percent, 1),
                "memory_available_mb": round(memory.available / 1024 / 1024, 1),
                "cpu_percent": round(cpu_percent, 1),
            },
            "provider": {"kind": provider_kind},
        }

    except psutil.Error as e:
        logging.exception("Health check failed: %s", e)
        return {
            "ok": False,
            "status": "error",
            "timestamp": datetime.now(UTC).isoformat(),
            "error": str(e),
        }


@app.get("/")
async def root() -> dict:
    """
    Root endpoint with API information.
    """
    return {
        "ok": True,
        "name": "FitPlan API",
        "version": __version__,
        "description": "Weekly workout plan generation API",
    }


# Routers for API endpoints
app.include_router(r_plan, prefix="/api/v1", tags=["plan"])
app.include_router(r_ai, prefix="/api/v1", tags=["ai"])
