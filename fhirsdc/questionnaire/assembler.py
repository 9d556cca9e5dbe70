"""
Questionnaire Assembler.

Client-side emulation of the SDC `$assemble` operation: turns a modular
root Questionnaire into a single flat Questionnaire.

Flow:
    1. Walk the root's items depth-first, left to right
    2. Each item tagged with sdc-questionnaire-subQuestionnaire is replaced,
       in place, by the (recursively assembled) items of the referenced form
    3. Root-level extensions of every fetched sub-questionnaire bubble up
       and are merged into the root, deduplicated by full content
    4. One assembledFrom entry is added per distinct canonical fetched
    5. The root's assemble-expectation marker is removed

Design Principle:
    Assembly is a fold. Each recursive step returns
    `(items, extensions_to_merge)` and only the top level builds the new
    root. Inputs are never mutated; every node in the output is fresh.

Per-run state:
    Each call gets its own AssemblyRun holding the fetch cache, the
    provenance order and the stack of canonicals being expanded. Nothing
    is shared between calls, so concurrent assemblies cannot see each
    other's fetches.

Usage:
    resolver = FhirQuestionnaireResolver(client)

    assembled = await assemble(resolver, root, on_progress=print)

    # Or keep an assembler around
    assembler = Assembler(resolver)
    assembled = await assembler.assemble(root)
    print(assembler.last_run.fetched)
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol, Union

from pydantic import ValidationError

from fhirsdc.questionnaire.errors import CycleDetected, ResolutionFailed
from fhirsdc.questionnaire.extensions import (
    ASSEMBLE_EXPECTATION_URL,
    ASSEMBLED_FROM_URL,
    NON_PROPAGATED_URLS,
    merge_unique,
    strip_extensions,
)
from fhirsdc.questionnaire.schemas import (
    Extension,
    ItemKind,
    Questionnaire,
    QuestionnaireItem,
)

logger = logging.getLogger(__name__)


class QuestionnaireResolver(Protocol):
    """Protocol for fetching a Questionnaire by canonical identifier."""

    async def resolve(self, canonical: str) -> Questionnaire:
        """Return the Questionnaire for `canonical`, or raise if not found."""
        ...


# Sync or async: the result is awaited only when awaitable
ResolveFn = Callable[[str], Any]
ResolverLike = Union[QuestionnaireResolver, ResolveFn]
ProgressSink = Callable[[str], Any]


@dataclass
class AssemblyRun:
    """
    State of a single assembly call.

    Attributes:
        cache: Fetched documents keyed by canonical
        fetched: Distinct canonicals in first-resolution order
        resolving: Canonicals currently being expanded (cycle guard)
        reference_sites: Number of reference items replaced
    """

    cache: dict[str, Questionnaire] = field(default_factory=dict)
    fetched: list[str] = field(default_factory=list)
    resolving: list[str] = field(default_factory=list)
    reference_sites: int = 0


class Assembler:
    """
    Assembles modular Questionnaires.

    The assembler itself holds only the resolver and the progress sink;
    all traversal state lives in a fresh AssemblyRun per call.

    Example:
        assembler = Assembler(
            MemoryQuestionnaireResolver([demographics, vitals]),
            on_progress=lambda msg: print(msg),
        )
        assembled = await assembler.assemble(annual_physical)
    """

    def __init__(
        self,
        resolver: ResolverLike,
        *,
        on_progress: ProgressSink | None = None,
    ):
        """
        Initialize assembler.

        Args:
            resolver: Object with an async `resolve(canonical)` method, or
                a callable (sync or async) taking the canonical
            on_progress: Optional sink for status strings (sync or async)
        """
        self._resolve = _as_resolve_fn(resolver)
        self._on_progress = on_progress
        # Run of the most recently started call; concurrent calls overwrite it
        self.last_run: AssemblyRun | None = None

    async def assemble(self, root: Questionnaire | dict[str, Any]) -> Questionnaire:
        """
        Assemble a root Questionnaire.

        Args:
            root: Root Questionnaire (model or FHIR JSON dict)

        Returns:
            A new Questionnaire with no sub-questionnaire references left

        Raises:
            ResolutionFailed: A referenced canonical could not be resolved
            CycleDetected: A sub-questionnaire references itself
        """
        assembled, _ = await self.assemble_with_run(root)
        return assembled

    async def assemble_with_run(
        self,
        root: Questionnaire | dict[str, Any],
    ) -> tuple[Questionnaire, AssemblyRun]:
        """
        Assemble a root Questionnaire and return the run that produced it.

        Use this instead of `last_run` when one assembler serves
        concurrent calls.
        """
        if not isinstance(root, Questionnaire):
            root = Questionnaire.model_validate(root)

        run = AssemblyRun()
        self.last_run = run

        # A sub-questionnaire pointing back at the root is a cycle too
        if root.canonical is not None:
            run.resolving.append(str(root.canonical))
            if root.version:
                run.resolving.append(root.url)

        await self._progress(f"Assembling {root.label}...")

        items, merged = await self._assemble_items(root.item, run)
        assembled = _build_root(root, items, merged, run.fetched)

        await self._progress(
            f"Assembly complete: {len(run.fetched)} sub-questionnaire(s) resolved"
        )
        logger.debug(
            f"[assembler] Done | root={root.label} | "
            f"fetched={len(run.fetched)} | sites={run.reference_sites}"
        )

        return assembled, run

    async def _assemble_items(
        self,
        items: list[QuestionnaireItem] | None,
        run: AssemblyRun,
    ) -> tuple[list[QuestionnaireItem] | None, list[Extension]]:
        """Assemble a sibling sequence; return new items and extensions to merge."""
        if items is None:
            return None, []

        assembled: list[QuestionnaireItem] = []
        merged: list[Extension] = []

        for item in items:
            if item.kind is ItemKind.REFERENCE:
                run.reference_sites += 1
                inlined, extensions = await self._expand_reference(
                    item.sub_questionnaire, run
                )
                assembled.extend(inlined)
                merged.extend(extensions)
                continue

            children, extensions = await self._assemble_items(item.item, run)
            assembled.append(item.with_children(children))
            merged.extend(extensions)

        # Only references vanished; don't leave an empty list behind
        if not assembled and items:
            return None, merged

        return assembled, merged

    async def _expand_reference(
        self,
        canonical: str,
        run: AssemblyRun,
    ) -> tuple[list[QuestionnaireItem], list[Extension]]:
        """Resolve one reference into its items and the extensions it brings."""
        if canonical in run.resolving:
            raise CycleDetected(canonical, [*run.resolving, canonical])

        document = await self._fetch(canonical, run)

        run.resolving.append(canonical)
        try:
            items, nested = await self._assemble_items(document.item, run)
        finally:
            run.resolving.pop()

        own = strip_extensions(document.extension, NON_PROPAGATED_URLS)
        return items or [], [*own, *nested]

    async def _fetch(self, canonical: str, run: AssemblyRun) -> Questionnaire:
        """Fetch a canonical once per run."""
        cached = run.cache.get(canonical)
        if cached is not None:
            logger.debug(f"[assembler] Cache hit: {canonical}")
            return cached

        await self._progress(f"Fetching sub-questionnaire {canonical}...")

        try:
            result = self._resolve(canonical)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"[assembler] Failed to resolve {canonical}: {e}")
            raise ResolutionFailed(canonical, str(e)) from e

        document = _as_questionnaire(canonical, result)

        run.cache[canonical] = document
        run.fetched.append(canonical)
        logger.info(
            f"[assembler] Resolved {canonical} | items={len(document.item or [])}"
        )

        return document

    async def _progress(self, message: str) -> None:
        """Log a status message and pass it to the sink, if any."""
        logger.info(f"[assembler] {message}")
        if self._on_progress is None:
            return
        result = self._on_progress(message)
        if inspect.isawaitable(result):
            await result


async def assemble(
    resolver: ResolverLike,
    root: Questionnaire | dict[str, Any],
    on_progress: ProgressSink | None = None,
) -> Questionnaire:
    """
    Assemble a modular Questionnaire.

    Args:
        resolver: Resolver object or callable (canonical -> Questionnaire)
        root: Root Questionnaire
        on_progress: Optional sink for status strings

    Returns:
        The assembled Questionnaire
    """
    return await Assembler(resolver, on_progress=on_progress).assemble(root)


def assembled_from(canonical: str) -> Extension:
    """Provenance extension recording that `canonical` was inlined."""
    return Extension(url=ASSEMBLED_FROM_URL, valueCanonical=canonical)


def _build_root(
    root: Questionnaire,
    items: list[QuestionnaireItem] | None,
    merged: list[Extension],
    fetched: list[str],
) -> Questionnaire:
    """Build the assembled root from the fold result."""
    extensions = strip_extensions(root.extension, {ASSEMBLE_EXPECTATION_URL})
    extensions = merge_unique(extensions, merged)
    extensions = merge_unique(extensions, [assembled_from(c) for c in fetched])

    data = root.model_dump(by_alias=True, exclude={"item", "extension"})
    return Questionnaire.model_validate(
        {
            **data,
            "extension": extensions or None,
            "item": items,
        }
    )


def _as_resolve_fn(resolver: ResolverLike) -> ResolveFn:
    resolve = getattr(resolver, "resolve", None)
    if callable(resolve):
        return resolve
    if callable(resolver):
        return resolver
    raise TypeError(f"Not a questionnaire resolver: {resolver!r}")


def _as_questionnaire(canonical: str, result: Any) -> Questionnaire:
    if isinstance(result, Questionnaire):
        return result
    if result is None:
        raise ResolutionFailed(canonical, "resolver returned nothing")
    try:
        return Questionnaire.model_validate(result)
    except ValidationError as e:
        raise ResolutionFailed(canonical, "resolved resource is not a Questionnaire") from e
