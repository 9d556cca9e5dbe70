"""
FHIR REST Client for fhirsdc.

Async access to a FHIR R4 server for the reads the assembler needs:
Questionnaire search, resource reads and the capability probe used to test a
server profile. It handles content negotiation, bearer auth and mapping
OperationOutcome errors to readable messages.

Usage:
    async with FhirClient(FhirConfig(base_url="https://hapi.fhir.org/baseR4")) as client:
        bundle = await client.search_questionnaires(url="http://example.org/Questionnaire/vitals")
        summary = await client.capabilities()

FHIR RESTful API:
    https://hl7.org/fhir/R4/http.html
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from fhirsdc.integrations.base import IntegrationClient, IntegrationConfig
from fhirsdc.integrations.fhir.schemas import Bundle, CapabilitySummary, OperationOutcome

if TYPE_CHECKING:
    from fhirsdc.config.schemas import ServerConfig

logger = logging.getLogger(__name__)

FHIR_JSON = "application/fhir+json"


# =============================================================================
# Configuration
# =============================================================================


@dataclass(frozen=True, slots=True)
class FhirConfig(IntegrationConfig):
    """Configuration for FHIR client."""

    # Public servers throttle aggressively; keep retries modest
    max_retries: int = 2
    retry_delay: float = 0.5

    def __post_init__(self):
        """Validate configuration."""
        if not self.base_url:
            raise ValueError("FHIR server base URL is required")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_server(cls, server: ServerConfig, **overrides: Any) -> FhirConfig:
        """Build client config from a saved server profile."""
        return cls(
            base_url=server.url,
            headers=dict(server.headers),
            access_token=server.bearer_token(),
            **overrides,
        )


# =============================================================================
# Client
# =============================================================================


class FhirClient(IntegrationClient):
    """
    Async client for a FHIR R4 server.

    Provides methods for:
    - Reading a resource by id
    - Searching a resource type
    - Questionnaire search with the authoring defaults
    - Capability probe (/metadata)
    """

    def __init__(self, config: FhirConfig):
        """
        Initialize FHIR client.

        Args:
            config: FHIR configuration with base URL and optional token
        """
        super().__init__(config)
        self._config: FhirConfig = config

    @property
    def name(self) -> str:
        """Integration name."""
        return "fhir"

    @property
    def base_url(self) -> str:
        return self._config.base_url

    def _default_headers(self) -> dict[str, str]:
        return {"Accept": FHIR_JSON, "Content-Type": FHIR_JSON}

    def _get_auth_headers(self) -> dict[str, str]:
        """Bearer token header, when a token is configured."""
        if self._config.access_token:
            return {"Authorization": f"Bearer {self._config.access_token}"}
        return {}

    def _error_message(self, response: httpx.Response) -> str:
        """Prefer OperationOutcome diagnostics over the raw body."""
        if "json" in response.headers.get("content-type", ""):
            try:
                outcome = OperationOutcome.model_validate(response.json())
            except ValueError:
                outcome = None
            if outcome is not None and outcome.message:
                return outcome.message
        return super()._error_message(response)

    # =========================================================================
    # Read / Search
    # =========================================================================

    async def read(self, resource_type: str, resource_id: str) -> dict[str, Any]:
        """
        Read a resource by logical id.

        Args:
            resource_type: e.g. "Questionnaire"
            resource_id: Logical id

        Returns:
            Resource JSON
        """
        response = await self._request("GET", f"/{resource_type}/{resource_id}")
        return response.json()

    async def search(
        self,
        resource_type: str,
        params: dict[str, Any] | None = None,
    ) -> Bundle:
        """
        Search a resource type.

        Args:
            resource_type: e.g. "Questionnaire"
            params: Search parameters

        Returns:
            Searchset Bundle
        """
        logger.debug(f"[fhir] Search {resource_type} params={params}")

        response = await self._request(
            "GET",
            f"/{resource_type}",
            params=params or None,
        )

        bundle = Bundle.model_validate(response.json())
        logger.debug(f"[fhir] {resource_type} search returned {len(bundle.entry)} entries")

        return bundle

    async def search_questionnaires(self, **params: Any) -> Bundle:
        """
        Search Questionnaires, newest first.

        Defaults: `_count=20`, `_sort=-_lastUpdated`; explicit params win.
        """
        return await self.search(
            "Questionnaire",
            {"_count": "20", "_sort": "-_lastUpdated", **params},
        )

    # =========================================================================
    # Capabilities / Health Check
    # =========================================================================

    async def capabilities(self) -> CapabilitySummary:
        """
        Summarize the server's CapabilityStatement.

        Returns:
            FHIR version, software name and supported resource types
        """
        response = await self._request("GET", "/metadata", params={"_summary": "true"})
        return CapabilitySummary.from_capability_statement(response.json())

    async def health_check(self) -> bool:
        """
        Check if the FHIR server is reachable.

        Returns:
            True if healthy
        """
        try:
            await self.capabilities()
            return True
        except Exception as e:
            logger.warning(f"[fhir] Health check failed for {self.base_url}: {e}")
            return False
