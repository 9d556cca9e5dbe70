"""
fhirsdc Integrations Layer.

Clients for remote servers the assembler resolves sub-questionnaires
against. Each integration follows the same pattern:

1. Client: Handles authentication and API communication
2. Schemas: Pydantic models for response bodies
3. Resolver: Adapts the client to the assembler's resolve() contract

Directory Structure:
    integrations/
    ├── base.py           # Base client, errors, retry
    └── fhir/             # FHIR R4 servers
        ├── client.py     # FhirClient
        ├── resolver.py   # FhirQuestionnaireResolver, MemoryQuestionnaireResolver
        └── schemas.py    # Bundle, OperationOutcome
"""

from fhirsdc.integrations.base import (
    AuthenticationError,
    IntegrationClient,
    IntegrationConfig,
    IntegrationError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "IntegrationClient",
    "IntegrationConfig",
    "IntegrationError",
    "NotFoundError",
    "RateLimitError",
    "ValidationError",
]
