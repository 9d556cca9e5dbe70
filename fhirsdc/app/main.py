"""
fhirsdc - Modular Questionnaire assembly service

FastAPI application entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from fhirsdc import __version__
from fhirsdc.app.api import assemble_router
from fhirsdc.app.dependencies import get_active_fhir_server, get_settings, shutdown_services

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Closes the FHIR client on shutdown.
    """
    logger.info("Starting fhirsdc...")

    yield

    logger.info("Shutting down fhirsdc...")
    try:
        await shutdown_services()
    except Exception as e:
        logger.error(f"Error during shutdown: {e}", exc_info=True)


settings = get_settings()

app = FastAPI(
    title="fhirsdc",
    description="Client-side SDC $assemble for modular FHIR Questionnaires",
    version=__version__,
    lifespan=lifespan,
    debug=settings.debug,
)

app.include_router(assemble_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, Any]:
    """Service status and the FHIR server sub-questionnaires resolve against."""
    try:
        server = get_active_fhir_server()
        return {
            "status": "healthy",
            "version": __version__,
            "fhir_server": {"name": server.name, "url": server.url},
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }


def main() -> None:
    """Run the service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "fhirsdc.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
