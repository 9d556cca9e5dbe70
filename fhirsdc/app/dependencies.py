"""
Dependency Injection for fhirsdc.

Provides singleton instances of settings, the FHIR client and the
questionnaire resolver. Route handlers receive the resolver through
FastAPI's `Depends`, so tests can swap it via `app.dependency_overrides`.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from fhirsdc.config import AppSettings, ServerConfig, ServerStore, get_active_server
from fhirsdc.integrations.fhir import (
    FhirClient,
    FhirConfig,
    FhirQuestionnaireResolver,
    MatchPolicy,
)

logger = logging.getLogger(__name__)


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get application settings from environment.

    Uses lru_cache for singleton pattern.
    """
    settings = AppSettings(
        service_name=os.getenv("FHIRSDC_SERVICE_NAME", "fhirsdc"),
        environment=os.getenv("FHIRSDC_ENVIRONMENT", "development"),
        debug=os.getenv("FHIRSDC_DEBUG", "false").lower() == "true",
        fhir_base_url=os.getenv("FHIRSDC_FHIR_BASE_URL") or None,
        fhir_token=os.getenv("FHIRSDC_FHIR_TOKEN") or None,
        match_policy=os.getenv("FHIRSDC_MATCH_POLICY", "strict"),
        request_timeout=float(os.getenv("FHIRSDC_REQUEST_TIMEOUT", "30")),
        max_retries=int(os.getenv("FHIRSDC_MAX_RETRIES", "2")),
    )

    servers_file = os.getenv("FHIRSDC_SERVERS_FILE")
    if servers_file:
        settings = settings.model_copy(update={"servers_file": Path(servers_file).expanduser()})

    return settings


# Global instances (initialized on first access)
_client: Optional[FhirClient] = None
_resolver: Optional[FhirQuestionnaireResolver] = None


def get_active_fhir_server() -> ServerConfig:
    """
    The server sub-questionnaires are resolved against.

    FHIRSDC_FHIR_BASE_URL wins over saved profiles.
    """
    settings = get_settings()

    if settings.fhir_base_url:
        return ServerConfig(
            id="env",
            name="FHIRSDC_FHIR_BASE_URL",
            url=settings.fhir_base_url,
            auth="bearer" if settings.fhir_token else "none",
            token=settings.fhir_token,
            active=True,
        )

    servers = ServerStore(settings.servers_file).load()
    server = get_active_server(servers, "fhir")
    if server is None:
        raise RuntimeError(f"No FHIR server profile configured in {settings.servers_file}")
    return server


def get_fhir_client() -> FhirClient:
    """
    Get the FHIR client for the active server.

    Creates the client on first call.
    """
    global _client
    if _client is None:
        settings = get_settings()
        server = get_active_fhir_server()
        _client = FhirClient(
            FhirConfig.from_server(
                server,
                timeout=settings.request_timeout,
                max_retries=settings.max_retries,
            )
        )
        logger.info(f"[fhir] Using server {server.name} ({server.url})")
    return _client


def get_resolver() -> FhirQuestionnaireResolver:
    """
    Get the questionnaire resolver.

    Returns:
        FhirQuestionnaireResolver bound to the active server
    """
    global _resolver
    if _resolver is None:
        settings = get_settings()
        _resolver = FhirQuestionnaireResolver(
            get_fhir_client(),
            policy=MatchPolicy.from_string(settings.match_policy),
        )
        logger.info(f"[resolver] Match policy: {_resolver.policy.value}")
    return _resolver


async def shutdown_services() -> None:
    """
    Cleanup on application shutdown.

    Called from FastAPI lifespan.
    """
    global _client, _resolver
    if _client is not None:
        await _client.close()
    _client = None
    _resolver = None
