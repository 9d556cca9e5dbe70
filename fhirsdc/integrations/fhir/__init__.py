"""
FHIR Integration for fhirsdc.

Connects the assembler to a remote form-definition store:
- FhirClient: async REST access (Questionnaire search/read, /metadata)
- FhirQuestionnaireResolver: canonical -> Questionnaire via search
- MemoryQuestionnaireResolver: the same over an in-memory collection

Usage:
    from fhirsdc.integrations.fhir import FhirClient, FhirConfig, FhirQuestionnaireResolver

    client = FhirClient(FhirConfig(base_url="https://hapi.fhir.org/baseR4"))
    resolver = FhirQuestionnaireResolver(client)
    questionnaire = await resolver.resolve("http://example.org/Questionnaire/vitals|2.1")
"""

from fhirsdc.integrations.fhir.client import FhirClient, FhirConfig
from fhirsdc.integrations.fhir.resolver import (
    AmbiguousCanonicalError,
    FhirQuestionnaireResolver,
    MatchPolicy,
    MemoryQuestionnaireResolver,
    QuestionnaireNotFoundError,
    select_questionnaire,
)
from fhirsdc.integrations.fhir.schemas import (
    Bundle,
    CapabilitySummary,
    OperationOutcome,
    OperationOutcomeIssue,
)

__all__ = [
    "AmbiguousCanonicalError",
    "Bundle",
    "CapabilitySummary",
    "FhirClient",
    "FhirConfig",
    "FhirQuestionnaireResolver",
    "MatchPolicy",
    "MemoryQuestionnaireResolver",
    "OperationOutcome",
    "OperationOutcomeIssue",
    "QuestionnaireNotFoundError",
    "select_questionnaire",
]
