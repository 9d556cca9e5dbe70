"""
$assemble Operation Handler for fhirsdc.

    POST /fhir/Questionnaire/$assemble
    Content-Type: application/fhir+json

    {
      "resourceType": "Parameters",
      "parameter": [{"name": "questionnaire", "resource": {...}}]
    }

A bare Questionnaire body is accepted too. The response is a Parameters
resource with `return` (the assembled Questionnaire) and `outcome` (one
information issue per progress message). Assembly errors come back as
422 with an OperationOutcome naming the failing canonical.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from fhirsdc.app.dependencies import get_resolver
from fhirsdc.integrations.fhir import OperationOutcome, OperationOutcomeIssue
from fhirsdc.integrations.fhir.client import FHIR_JSON
from fhirsdc.questionnaire import (
    AssemblyError,
    CycleDetected,
    Questionnaire,
    QuestionnaireResolver,
    assemble,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fhir", tags=["questionnaire"])


def _fhir_response(body: dict[str, Any], status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=body, status_code=status_code, media_type=FHIR_JSON)


def _outcome_response(message: str, status_code: int, code: str) -> JSONResponse:
    outcome = OperationOutcome.single(message, code=code)
    return _fhir_response(outcome.to_fhir(), status_code)


def _extract_questionnaire(payload: Any) -> dict[str, Any] | None:
    """Pull the root Questionnaire out of a Parameters or bare body."""
    if not isinstance(payload, dict):
        return None

    resource_type = payload.get("resourceType")

    if resource_type == "Questionnaire":
        return payload

    if resource_type == "Parameters":
        for parameter in payload.get("parameter") or []:
            if parameter.get("name") == "questionnaire" and isinstance(
                parameter.get("resource"), dict
            ):
                return parameter["resource"]

    return None


@router.post("/Questionnaire/$assemble")
async def assemble_questionnaire(
    request: Request,
    resolver: QuestionnaireResolver = Depends(get_resolver),
) -> JSONResponse:
    """Assemble a modular Questionnaire."""
    try:
        payload = await request.json()
    except ValueError:
        return _outcome_response("Request body is not JSON", 400, "structure")

    resource = _extract_questionnaire(payload)
    if resource is None:
        return _outcome_response(
            "Expected a Questionnaire or Parameters with a 'questionnaire' resource",
            400,
            "required",
        )

    try:
        root = Questionnaire.model_validate(resource)
    except ValidationError as e:
        return _outcome_response(f"Invalid Questionnaire: {e.error_count()} error(s)", 400, "structure")

    progress: list[str] = []

    try:
        assembled = await assemble(resolver, root, on_progress=progress.append)
    except AssemblyError as e:
        logger.warning(f"[assemble] Failed for {root.label}: {e}")
        code = "invariant" if isinstance(e, CycleDetected) else "not-found"
        return _outcome_response(str(e), 422, code)

    outcome = OperationOutcome(
        issue=[
            OperationOutcomeIssue(severity="information", code="informational", diagnostics=message)
            for message in progress
        ]
    )

    return _fhir_response(
        {
            "resourceType": "Parameters",
            "parameter": [
                {"name": "return", "resource": assembled.to_fhir()},
                {"name": "outcome", "resource": outcome.to_fhir()},
            ],
        }
    )
