"""
fhirsdc - Modular FHIR Questionnaire assembly.

Client-side emulation of the SDC $assemble operation: a root Questionnaire
that references reusable sub-questionnaires by canonical URL is flattened
into one Questionnaire, with provenance recorded and shared extensions
merged.

Quick Start:
    >>> from fhirsdc import assemble
    >>> from fhirsdc.integrations.fhir import MemoryQuestionnaireResolver
    >>>
    >>> resolver = MemoryQuestionnaireResolver([demographics, vitals])
    >>> assembled = await assemble(resolver, annual_physical, on_progress=print)
"""

__version__ = "0.1.0"
__license__ = "MIT"

from fhirsdc.questionnaire import (
    Assembler,
    AssemblyError,
    CycleDetected,
    Questionnaire,
    QuestionnaireItem,
    ResolutionFailed,
    assemble,
)

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Assembly
    "Assembler",
    "assemble",
    # Model
    "Questionnaire",
    "QuestionnaireItem",
    # Errors
    "AssemblyError",
    "CycleDetected",
    "ResolutionFailed",
]
