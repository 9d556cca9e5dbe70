"""
Assembler Usage Examples.

How to flatten a modular Questionnaire into a single form, offline and
against a FHIR server.

Architecture:
    ┌─────────────────┐      ┌──────────────────┐      ┌─────────────────┐
    │  Modular root   │ ──▶  │    Assembler     │ ──▶  │ Assembled form  │
    │  (subQ items)   │      │  (fold + merge)  │      │ (no subQ items) │
    └─────────────────┘      └──────────────────┘      └─────────────────┘
                                      │
                                      ▼
                             ┌──────────────────┐
                             │     Resolver     │
                             │ (Memory / FHIR)  │
                             └──────────────────┘
"""

import asyncio
import json

SDC = "http://hl7.org/fhir/uv/sdc/StructureDefinition"
DEMOGRAPHICS = "http://example.org/fhir/Questionnaire/demographics-module"
VITALS = "http://example.org/fhir/Questionnaire/vitals-module"


def annual_physical() -> dict:
    def ref(link_id: str, canonical: str) -> dict:
        return {
            "linkId": link_id,
            "type": "display",
            "extension": [
                {"url": f"{SDC}/sdc-questionnaire-subQuestionnaire", "valueCanonical": canonical}
            ],
        }

    return {
        "resourceType": "Questionnaire",
        "url": "http://example.org/fhir/Questionnaire/annual-physical",
        "status": "active",
        "title": "Annual Physical Exam",
        "extension": [
            {"url": f"{SDC}/sdc-questionnaire-assemble-expectation", "valueCode": "assemble-root"}
        ],
        "item": [
            ref("demo-ref", f"{DEMOGRAPHICS}|1.0"),
            ref("vitals-ref", f"{VITALS}|2.1"),
            {"linkId": "ros-cardio", "text": "Chest pain or palpitations?", "type": "boolean"},
        ],
    }


def modules() -> list[dict]:
    return [
        {
            "resourceType": "Questionnaire",
            "url": DEMOGRAPHICS,
            "version": "1.0",
            "status": "active",
            "item": [
                {"linkId": "first-name", "text": "First name", "type": "string"},
                {"linkId": "dob", "text": "Date of birth", "type": "date"},
            ],
        },
        {
            "resourceType": "Questionnaire",
            "url": VITALS,
            "version": "2.1",
            "status": "active",
            "item": [
                {"linkId": "height", "text": "Height (cm)", "type": "decimal"},
                {"linkId": "weight", "text": "Weight (kg)", "type": "decimal"},
            ],
        },
    ]


# =============================================================================
# Example 1: In-memory resolver (offline, tests)
# =============================================================================

async def example_memory_resolver():
    """Assemble against documents held in memory."""
    from fhirsdc import Assembler
    from fhirsdc.integrations.fhir import MemoryQuestionnaireResolver

    resolver = MemoryQuestionnaireResolver(modules())
    assembler = Assembler(resolver, on_progress=print)

    assembled = await assembler.assemble(annual_physical())

    print(f"Items: {[item.link_id for item in assembled.item]}")
    print(f"Fetched: {assembler.last_run.fetched}")
    print(json.dumps(assembled.to_fhir(), indent=2))

    return assembled


# =============================================================================
# Example 2: Plain function resolver
# =============================================================================

async def example_function_resolver():
    """Any async callable taking a canonical works as a resolver."""
    from fhirsdc import assemble
    from fhirsdc.questionnaire import Canonical

    by_url = {doc["url"]: doc for doc in modules()}

    async def resolve(canonical: str) -> dict | None:
        return by_url.get(Canonical.parse(canonical).url)

    assembled = await assemble(resolve, annual_physical())
    print(f"Items: {[item.link_id for item in assembled.item]}")


# =============================================================================
# Example 3: FHIR server
# =============================================================================

async def example_fhir_server():
    """
    Resolve sub-questionnaires from a FHIR server.

    The modules must exist on the server; public HAPI is used here.
    """
    from fhirsdc import AssemblyError, assemble
    from fhirsdc.integrations.fhir import (
        FhirClient,
        FhirConfig,
        FhirQuestionnaireResolver,
        MatchPolicy,
    )

    async with FhirClient(FhirConfig(base_url="https://hapi.fhir.org/baseR4")) as client:
        summary = await client.capabilities()
        print(f"Server: {summary.software} (FHIR {summary.fhir_version})")

        resolver = FhirQuestionnaireResolver(client, policy=MatchPolicy.LATEST)
        try:
            await assemble(resolver, annual_physical(), on_progress=print)
        except AssemblyError as e:
            print(f"Assembly failed for {e.canonical}: {e}")


# =============================================================================
# Main: Run Examples
# =============================================================================

async def main():
    """Run examples."""
    print("=" * 60)
    print("Example 1: In-memory resolver")
    print("=" * 60)
    await example_memory_resolver()

    print("\n" + "=" * 60)
    print("Example 2: Function resolver")
    print("=" * 60)
    await example_function_resolver()

    print("\n" + "=" * 60)
    print("Example 3: FHIR server")
    print("=" * 60)
    # await example_fhir_server()  # Needs network access


if __name__ == "__main__":
    asyncio.run(main())
