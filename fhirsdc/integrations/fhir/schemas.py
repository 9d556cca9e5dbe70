"""
Pydantic schemas for FHIR REST responses.

Only the parts of Bundle, OperationOutcome and CapabilityStatement the
resolver needs are modelled; unknown elements are ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Bundle
# =============================================================================


class BundleEntry(BaseModel):
    """One entry of a searchset Bundle."""

    model_config = ConfigDict(populate_by_name=True)

    full_url: str | None = Field(None, alias="fullUrl")
    resource: dict[str, Any] | None = None
    search: dict[str, Any] | None = None


class Bundle(BaseModel):
    """A FHIR Bundle (search results)."""

    model_config = ConfigDict(populate_by_name=True)

    resource_type: str = Field("Bundle", alias="resourceType")
    type: str | None = None
    total: int | None = None
    entry: list[BundleEntry] = Field(default_factory=list)
    link: list[dict[str, Any]] = Field(default_factory=list)

    def resources(self, resource_type: str | None = None) -> list[dict[str, Any]]:
        """
        Resources in the bundle, optionally filtered by type.

        Entries with search.mode "include" or "outcome" are skipped; only
        actual matches are returned.
        """
        found = []
        for entry in self.entry:
            if entry.resource is None:
                continue
            if entry.search and entry.search.get("mode") not in (None, "match"):
                continue
            if resource_type and entry.resource.get("resourceType") != resource_type:
                continue
            found.append(entry.resource)
        return found

    @property
    def next_link(self) -> str | None:
        """URL of the next page, if any."""
        for link in self.link:
            if link.get("relation") == "next":
                return link.get("url")
        return None


# =============================================================================
# OperationOutcome
# =============================================================================


class OperationOutcomeIssue(BaseModel):
    """One issue of an OperationOutcome."""

    severity: str = "error"
    code: str = "processing"
    diagnostics: str | None = None
    details: dict[str, Any] | None = None

    @property
    def message(self) -> str | None:
        """diagnostics, falling back to details.text."""
        if self.diagnostics:
            return self.diagnostics
        if self.details:
            return self.details.get("text")
        return None


class OperationOutcome(BaseModel):
    """A FHIR OperationOutcome."""

    model_config = ConfigDict(populate_by_name=True)

    resource_type: str = Field("OperationOutcome", alias="resourceType")
    issue: list[OperationOutcomeIssue] = Field(default_factory=list)

    @property
    def message(self) -> str | None:
        """Message of the first issue."""
        if not self.issue:
            return None
        return self.issue[0].message

    @classmethod
    def single(
        cls,
        diagnostics: str,
        *,
        severity: str = "error",
        code: str = "processing",
    ) -> OperationOutcome:
        """Build an outcome with one issue."""
        return cls(issue=[OperationOutcomeIssue(severity=severity, code=code, diagnostics=diagnostics)])

    def to_fhir(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Capability summary
# =============================================================================


class CapabilitySummary(BaseModel):
    """What a server reports about itself via /metadata."""

    fhir_version: str = "unknown"
    software: str = "unknown"
    resource_types: list[str] = Field(default_factory=list)

    @classmethod
    def from_capability_statement(cls, data: dict[str, Any]) -> CapabilitySummary:
        """Summarize a CapabilityStatement."""
        rest = data.get("rest") or [{}]
        resources = rest[0].get("resource") or []
        return cls(
            fhir_version=data.get("fhirVersion") or "unknown",
            software=(data.get("software") or {}).get("name") or "unknown",
            resource_types=sorted(r["type"] for r in resources if r.get("type")),
        )

    def supports(self, resource_type: str) -> bool:
        return resource_type in self.resource_types
