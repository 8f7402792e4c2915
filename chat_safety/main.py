"""
FastAPI application exposing the safety layer.
Entry point with router configuration and lifecycle management.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI

from chat_safety import __version__
from chat_safety.api.routes import safety
from chat_safety.config import configure_logging, get_settings
from chat_safety.models.schemas import HealthCheckResponse
from chat_safety.services.bootstrap import create_safety_service

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Creates the safety service on startup and releases it on shutdown.
    """
    configure_logging(settings.log_level)
    logger.info(f"Starting {settings.service_name} ({settings.environment})...")
    app.state.safety_service = create_safety_service(settings)

    yield

    logger.info(f"Shutting down {settings.service_name}...")
    await app.state.safety_service.aclose()


app = FastAPI(
    title="Chat Safety Service",
    description="""
    Real-time content-safety evaluation for chat turns.

    ## API Organization

    * `/health` - Health check
    * `/safety/status` - Provider, fallback mode and policies
    * `/safety/evaluate` - Evaluate one text (user input or model output)
    * `/safety/evaluate/batch` - Evaluate several texts
    * `/safety/filter` - Rewrite unsafe sentences
    * `/safety/metrics` - Counters and samples
    """,
    version=__version__,
    lifespan=lifespan,
)

app.include_router(safety.router, prefix="/safety", tags=["safety"])


@app.get("/health", response_model=HealthCheckResponse, tags=["health"])
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        HealthCheckResponse: Service health status
    """
    return HealthCheckResponse(
        status="healthy",
        service=settings.service_name,
        version=__version__,
        timestamp=datetime.now(timezone.utc),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chat_safety.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
    )
