"""
Tests for questionnaire resolvers.

Tests for:
- select_questionnaire match policies
- MemoryQuestionnaireResolver
- FhirQuestionnaireResolver (client patched)
"""

from unittest.mock import AsyncMock, patch

import pytest

from fhirsdc.integrations.fhir import (
    AmbiguousCanonicalError,
    Bundle,
    FhirClient,
    FhirConfig,
    FhirQuestionnaireResolver,
    MatchPolicy,
    MemoryQuestionnaireResolver,
    QuestionnaireNotFoundError,
    select_questionnaire,
)
from fhirsdc.integrations.base import NotFoundError
from fhirsdc.questionnaire import Questionnaire

URL = "http://example.org/fhir/Questionnaire/vitals-module"

# =============================================================================
# Fixtures
# =============================================================================


def version(v, last_updated=None):
    data = {"resourceType": "Questionnaire", "url": URL, "version": v, "status": "active"}
    if last_updated:
        data["meta"] = {"lastUpdated": last_updated}
    return Questionnaire.model_validate(data)


@pytest.fixture
def fhir_client():
    """FHIR client against a fake base URL."""
    return FhirClient(FhirConfig(base_url="https://fhir.example.org/r4/"))


def searchset(*questionnaires):
    return Bundle.model_validate(
        {
            "resourceType": "Bundle",
            "type": "searchset",
            "total": len(questionnaires),
            "entry": [
                {"resource": q.to_fhir(), "search": {"mode": "match"}} for q in questionnaires
            ],
        }
    )


# =============================================================================
# select_questionnaire Tests
# =============================================================================


class TestSelectQuestionnaire:
    """Tests for the match policy."""

    def test_single_match(self):
        chosen = select_questionnaire(URL, [version("1.0")])
        assert chosen.version == "1.0"

    def test_no_match(self):
        with pytest.raises(QuestionnaireNotFoundError) as exc_info:
            select_questionnaire("urn:nothing", [version("1.0")])
        assert exc_info.value.canonical == "urn:nothing"
        assert isinstance(exc_info.value, NotFoundError)

    def test_pinned_version_filters(self):
        candidates = [version("1.0"), version("2.1"), version("3.0")]
        chosen = select_questionnaire(f"{URL}|2.1", candidates)
        assert chosen.version == "2.1"

    def test_pinned_version_missing(self):
        with pytest.raises(QuestionnaireNotFoundError):
            select_questionnaire(f"{URL}|9.9", [version("1.0")])

    def test_strict_rejects_ambiguity(self):
        with pytest.raises(AmbiguousCanonicalError) as exc_info:
            select_questionnaire(URL, [version("1.0"), version("2.0")], MatchPolicy.STRICT)
        assert exc_info.value.versions == ["1.0", "2.0"]
        assert "pin a version" in str(exc_info.value)

    def test_latest_prefers_last_updated(self):
        candidates = [
            version("3.0", "2023-01-01T00:00:00Z"),
            version("2.0", "2024-06-01T12:00:00+00:00"),
        ]
        chosen = select_questionnaire(URL, candidates, MatchPolicy.LATEST)
        assert chosen.version == "2.0"

    def test_latest_falls_back_to_numeric_version(self):
        candidates = [version("1.10"), version("1.9"), version("1.2")]
        chosen = select_questionnaire(URL, candidates, MatchPolicy.LATEST)
        assert chosen.version == "1.10"

    def test_policy_from_string(self):
        assert MatchPolicy.from_string("LATEST") is MatchPolicy.LATEST
        assert MatchPolicy.from_string("bogus") is MatchPolicy.STRICT


# =============================================================================
# MemoryQuestionnaireResolver Tests
# =============================================================================


class TestMemoryQuestionnaireResolver:
    """Tests for the in-memory resolver."""

    @pytest.mark.asyncio
    async def test_resolves_dicts(self, vitals_module):
        resolver = MemoryQuestionnaireResolver([vitals_module])
        result = await resolver.resolve(f"{URL}|2.1")
        assert result.title == "Vital Signs Module"
        assert len(resolver) == 1

    @pytest.mark.asyncio
    async def test_policy_applies(self):
        resolver = MemoryQuestionnaireResolver(
            [version("1.0"), version("2.0")],
            policy=MatchPolicy.LATEST,
        )
        result = await resolver.resolve(URL)
        assert result.version == "2.0"

    def test_requires_url(self):
        resolver = MemoryQuestionnaireResolver()
        with pytest.raises(ValueError, match="needs a url"):
            resolver.add({"resourceType": "Questionnaire", "status": "draft"})


# =============================================================================
# FhirQuestionnaireResolver Tests
# =============================================================================


class TestFhirQuestionnaireResolver:
    """Tests for FHIR search based resolution."""

    @pytest.mark.asyncio
    async def test_searches_by_url_and_version(self, fhir_client):
        resolver = FhirQuestionnaireResolver(fhir_client)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset(version("2.1"))

            result = await resolver.resolve(f"{URL}|2.1")

            assert result.version == "2.1"
            mock_search.assert_called_once_with(url=URL, version="2.1")

    @pytest.mark.asyncio
    async def test_unversioned_search(self, fhir_client):
        resolver = FhirQuestionnaireResolver(fhir_client)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset(version("1.0"))

            await resolver.resolve(URL)

            mock_search.assert_called_once_with(url=URL)

    @pytest.mark.asyncio
    async def test_server_ignoring_version_param(self, fhir_client):
        """Versions are re-checked client-side."""
        resolver = FhirQuestionnaireResolver(fhir_client)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset(version("1.0"), version("2.1"))

            result = await resolver.resolve(f"{URL}|2.1")

            assert result.version == "2.1"

    @pytest.mark.asyncio
    async def test_empty_searchset(self, fhir_client):
        resolver = FhirQuestionnaireResolver(fhir_client)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset()

            with pytest.raises(QuestionnaireNotFoundError) as exc_info:
                await resolver.resolve(URL)

            assert exc_info.value.integration == "fhir"

    @pytest.mark.asyncio
    async def test_strict_multiple_matches(self, fhir_client):
        resolver = FhirQuestionnaireResolver(fhir_client)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset(version("1.0"), version("2.0"))

            with pytest.raises(AmbiguousCanonicalError):
                await resolver.resolve(URL)

    @pytest.mark.asyncio
    async def test_latest_multiple_matches(self, fhir_client):
        resolver = FhirQuestionnaireResolver(fhir_client, policy=MatchPolicy.LATEST)

        with patch.object(
            fhir_client,
            "search_questionnaires",
            new_callable=AsyncMock,
        ) as mock_search:
            mock_search.return_value = searchset(
                version("1.0", "2024-01-01T00:00:00Z"),
                version("2.0", "2023-01-01T00:00:00Z"),
            )

            result = await resolver.resolve(URL)

            assert result.version == "1.0"
