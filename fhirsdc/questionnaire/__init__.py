"""
Questionnaire model and modular-form assembly.

Components:
    - Questionnaire / QuestionnaireItem / Extension: the form tree
    - Canonical: parsed `url|version` identifiers
    - Assembler / assemble(): client-side SDC $assemble

Usage:
    from fhirsdc.questionnaire import assemble

    assembled = await assemble(resolver, root, on_progress=print)
"""

from .assembler import (
    Assembler,
    AssemblyRun,
    QuestionnaireResolver,
    assemble,
    assembled_from,
)
from .errors import AssemblyError, CycleDetected, ResolutionFailed
from .extensions import (
    ASSEMBLE_EXPECTATION_URL,
    ASSEMBLED_FROM_URL,
    SUB_QUESTIONNAIRE_URL,
)
from .schemas import Canonical, Extension, ItemKind, Questionnaire, QuestionnaireItem

__all__ = [
    # Assembly
    "Assembler",
    "AssemblyRun",
    "QuestionnaireResolver",
    "assemble",
    "assembled_from",
    # Errors
    "AssemblyError",
    "CycleDetected",
    "ResolutionFailed",
    # Extension URLs
    "ASSEMBLE_EXPECTATION_URL",
    "ASSEMBLED_FROM_URL",
    "SUB_QUESTIONNAIRE_URL",
    # Model
    "Canonical",
    "Extension",
    "ItemKind",
    "Questionnaire",
    "QuestionnaireItem",
]
