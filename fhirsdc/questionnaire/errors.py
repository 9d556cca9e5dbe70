"""
Errors raised by questionnaire assembly.

Every assembly error names the canonical identifier that caused it, so
callers can point a form author at the broken sub-questionnaire reference.
"""

from __future__ import annotations


class AssemblyError(Exception):
    """Base exception for assembly failures."""

    def __init__(self, message: str, canonical: str):
        super().__init__(message)
        self.canonical = canonical


class ResolutionFailed(AssemblyError):
    """Raised when a referenced sub-questionnaire cannot be resolved."""

    def __init__(self, canonical: str, reason: str | None = None):
        message = f"Could not resolve sub-questionnaire '{canonical}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, canonical)
        self.reason = reason


class CycleDetected(AssemblyError):
    """Raised when a sub-questionnaire references itself, directly or not."""

    def __init__(self, canonical: str, chain: list[str]):
        path = " -> ".join(chain)
        super().__init__(f"Sub-questionnaire cycle at '{canonical}': {path}", canonical)
        self.chain = list(chain)
