"""
Questionnaire Resolvers.

Resolvers turn a canonical identifier (`url` or `url|version`) into exactly
one Questionnaire. The Assembler only sees the `resolve()` method; where
the documents come from (a FHIR server, an in-memory set) is up to the
resolver.

Match Policy:
    A canonical search can return several Questionnaires, e.g. several
    stored versions of an unpinned url. Picking "whatever came first" would
    silently choose a version, so the choice is explicit:

    - STRICT (default): exactly one match, otherwise fail
    - LATEST: pick the most recently updated, then the highest version

    Zero matches always fail with QuestionnaireNotFoundError.

Usage:
    resolver = FhirQuestionnaireResolver(client, policy=MatchPolicy.LATEST)
    questionnaire = await resolver.resolve("http://example.org/Questionnaire/vitals|2.1")

    # Offline / tests
    resolver = MemoryQuestionnaireResolver([demographics, vitals])
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from fhirsdc.integrations.base import IntegrationError, NotFoundError
from fhirsdc.questionnaire.schemas import Canonical, Questionnaire

if TYPE_CHECKING:
    from fhirsdc.integrations.fhir.client import FhirClient

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


# =============================================================================
# Exceptions
# =============================================================================


class QuestionnaireNotFoundError(NotFoundError):
    """Raised when no Questionnaire matches a canonical."""

    def __init__(self, canonical: str, integration: str = "resolver", **kwargs):
        super().__init__(f"No Questionnaire matches '{canonical}'", integration, **kwargs)
        self.canonical = canonical


class AmbiguousCanonicalError(IntegrationError):
    """Raised under STRICT policy when a canonical matches several Questionnaires."""

    def __init__(
        self,
        canonical: str,
        versions: list[str | None],
        integration: str = "resolver",
    ):
        listed = ", ".join(v or "<unversioned>" for v in versions)
        super().__init__(
            f"'{canonical}' matches {len(versions)} Questionnaires ({listed}); "
            "pin a version",
            integration,
            retryable=False,
        )
        self.canonical = canonical
        self.versions = versions


# =============================================================================
# Match policy
# =============================================================================


class MatchPolicy(str, Enum):
    """How to choose among several Questionnaires matching one canonical."""

    STRICT = "strict"
    LATEST = "latest"

    @classmethod
    def from_string(cls, value: str) -> MatchPolicy:
        """Convert string to policy, defaulting to STRICT."""
        try:
            return cls(value.lower())
        except ValueError:
            logger.warning(f"[resolver] Unknown match policy '{value}', using strict")
            return cls.STRICT


def select_questionnaire(
    canonical: str,
    candidates: Iterable[Questionnaire],
    policy: MatchPolicy = MatchPolicy.STRICT,
    *,
    integration: str = "resolver",
) -> Questionnaire:
    """
    Choose the Questionnaire a canonical refers to.

    Candidates whose url differs, or whose version differs from a pinned
    version, are discarded first.

    Args:
        canonical: `url` or `url|version`
        candidates: Possible matches (e.g. search results)
        policy: Tie-break policy for several matches
        integration: Name used in raised errors

    Returns:
        The selected Questionnaire

    Raises:
        QuestionnaireNotFoundError: No candidate matches
        AmbiguousCanonicalError: Several match under STRICT policy
    """
    wanted = Canonical.parse(canonical)

    matches = [
        q
        for q in candidates
        if q.url == wanted.url and (not wanted.is_pinned or q.version == wanted.version)
    ]

    if not matches:
        raise QuestionnaireNotFoundError(canonical, integration)

    if len(matches) == 1:
        return matches[0]

    if policy is MatchPolicy.STRICT:
        raise AmbiguousCanonicalError(canonical, [q.version for q in matches], integration)

    chosen = max(matches, key=_recency_key)
    logger.info(
        f"[resolver] {len(matches)} matches for {canonical}, "
        f"picked version={chosen.version} lastUpdated={chosen.last_updated}"
    )
    return chosen


def _recency_key(questionnaire: Questionnaire) -> tuple[datetime, tuple[int, Any]]:
    return (_parse_instant(questionnaire.last_updated), _version_key(questionnaire.version))


def _parse_instant(value: str | None) -> datetime:
    if not value:
        return _EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _version_key(version: str | None) -> tuple[int, Any]:
    # Dotted-numeric versions sort numerically and above free-form ones
    if not version:
        return (0, "")
    parts = version.split(".")
    if all(p.isdigit() for p in parts):
        return (2, tuple(int(p) for p in parts))
    return (1, version)


# =============================================================================
# Resolvers
# =============================================================================


class FhirQuestionnaireResolver:
    """
    Resolves canonicals by searching a FHIR server.

    Search: `GET [base]/Questionnaire?url=<url>[&version=<version>]`
    sorted newest first. The version is also checked client-side because
    some servers ignore unknown search parameters.
    """

    def __init__(
        self,
        client: FhirClient,
        *,
        policy: MatchPolicy = MatchPolicy.STRICT,
    ):
        """
        Initialize resolver.

        Args:
            client: FHIR client for the form-definition store
            policy: Tie-break policy for several matches
        """
        self._client = client
        self._policy = policy

    @property
    def policy(self) -> MatchPolicy:
        return self._policy

    async def resolve(self, canonical: str) -> Questionnaire:
        """
        Resolve a canonical to one Questionnaire.

        Raises:
            QuestionnaireNotFoundError: No match on the server
            AmbiguousCanonicalError: Several matches under STRICT policy
            IntegrationError: Transport failures (after retries)
        """
        wanted = Canonical.parse(canonical)

        params: dict[str, str] = {"url": wanted.url}
        if wanted.is_pinned:
            params["version"] = wanted.version

        logger.info(f"[resolver] Searching {self._client.base_url} for {canonical}")

        bundle = await self._client.search_questionnaires(**params)
        candidates = [
            Questionnaire.model_validate(resource)
            for resource in bundle.resources("Questionnaire")
        ]

        return select_questionnaire(
            canonical,
            candidates,
            self._policy,
            integration=self._client.name,
        )


class MemoryQuestionnaireResolver:
    """
    Resolves canonicals from an in-memory collection.

    Useful for offline authoring and tests.

    Example:
        resolver = MemoryQuestionnaireResolver([demographics, vitals])
        resolver.add(allergies)
    """

    def __init__(
        self,
        questionnaires: Iterable[Questionnaire | dict[str, Any]] = (),
        *,
        policy: MatchPolicy = MatchPolicy.STRICT,
    ):
        self._questionnaires: list[Questionnaire] = []
        self._policy = policy
        for questionnaire in questionnaires:
            self.add(questionnaire)

    def add(self, questionnaire: Questionnaire | dict[str, Any]) -> None:
        """Add a Questionnaire (model or FHIR JSON)."""
        if not isinstance(questionnaire, Questionnaire):
            questionnaire = Questionnaire.model_validate(questionnaire)
        if not questionnaire.url:
            raise ValueError("Questionnaire needs a url to be resolvable")
        self._questionnaires.append(questionnaire)

    async def resolve(self, canonical: str) -> Questionnaire:
        """Resolve a canonical from the collection."""
        return select_questionnaire(canonical, self._questionnaires, self._policy)

    def __len__(self) -> int:
        return len(self._questionnaires)
