"""
Pytest configuration and fixtures for fhirsdc tests.
"""

import sys
from pathlib import Path

import pytest

# Add the repository root to path for imports
# This allows `from fhirsdc.questionnaire import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

SDC = "http://hl7.org/fhir/uv/sdc/StructureDefinition"
SUB_Q = f"{SDC}/sdc-questionnaire-subQuestionnaire"
EXPECTATION = f"{SDC}/sdc-questionnaire-assemble-expectation"

DEMOGRAPHICS = "http://example.org/fhir/Questionnaire/demographics-module"
VITALS = "http://example.org/fhir/Questionnaire/vitals-module"
LAUNCH_CONTEXT = f"{SDC}/sdc-questionnaire-launchContext"


@pytest.fixture
def annual_physical():
    """Modular root form referencing two sub-questionnaires."""
    return {
        "resourceType": "Questionnaire",
        "url": "http://example.org/fhir/Questionnaire/annual-physical",
        "status": "active",
        "title": "Annual Physical Exam",
        "extension": [{"url": EXPECTATION, "valueCode": "assemble-root"}],
        "item": [
            {
                "linkId": "demo-ref",
                "text": "Demographics",
                "type": "display",
                "extension": [{"url": SUB_Q, "valueCanonical": f"{DEMOGRAPHICS}|1.0"}],
            },
            {
                "linkId": "vitals-ref",
                "text": "Vital Signs",
                "type": "display",
                "extension": [{"url": SUB_Q, "valueCanonical": f"{VITALS}|2.1"}],
            },
            {
                "linkId": "local-review",
                "text": "Review of Systems",
                "type": "group",
                "item": [
                    {"linkId": "ros-cardio", "text": "Chest pain or palpitations?", "type": "boolean"},
                    {"linkId": "ros-respiratory", "text": "Shortness of breath?", "type": "boolean"},
                ],
            },
        ],
    }


@pytest.fixture
def demographics_module():
    """Reusable demographics sub-questionnaire."""
    return {
        "resourceType": "Questionnaire",
        "url": DEMOGRAPHICS,
        "version": "1.0",
        "status": "active",
        "title": "Demographics Module",
        "extension": [
            {"url": EXPECTATION, "valueCode": "assemble-child"},
            {
                "url": LAUNCH_CONTEXT,
                "extension": [
                    {"url": "name", "valueCoding": {"code": "patient"}},
                    {"url": "type", "valueCode": "Patient"},
                ],
            },
        ],
        "item": [
            {"linkId": "first-name", "text": "First name", "type": "string", "required": True},
            {"linkId": "last-name", "text": "Last name", "type": "string", "required": True},
            {"linkId": "dob", "text": "Date of birth", "type": "date", "required": True},
            {
                "linkId": "gender",
                "text": "Gender",
                "type": "choice",
                "answerOption": [
                    {"valueCoding": {"code": "male", "display": "Male"}},
                    {"valueCoding": {"code": "female", "display": "Female"}},
                    {"valueCoding": {"code": "other", "display": "Other"}},
                ],
            },
        ],
    }


@pytest.fixture
def vitals_module():
    """Reusable vitals sub-questionnaire sharing the patient launch context."""
    return {
        "resourceType": "Questionnaire",
        "url": VITALS,
        "version": "2.1",
        "status": "active",
        "title": "Vital Signs Module",
        "extension": [
            {"url": EXPECTATION, "valueCode": "assemble-child"},
            {
                "url": LAUNCH_CONTEXT,
                "extension": [
                    {"url": "name", "valueCoding": {"code": "patient"}},
                    {"url": "type", "valueCode": "Patient"},
                ],
            },
        ],
        "item": [
            {
                "linkId": "vitals",
                "text": "Vital signs",
                "type": "group",
                "item": [
                    {"linkId": "height", "text": "Height (cm)", "type": "decimal"},
                    {"linkId": "weight", "text": "Weight (kg)", "type": "decimal"},
                ],
            }
        ],
    }
