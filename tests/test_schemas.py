"""
Tests for the Questionnaire model and extension helpers.
"""

import pytest
from pydantic import ValidationError

from fhirsdc.questionnaire import (
    SUB_QUESTIONNAIRE_URL,
    Canonical,
    Extension,
    ItemKind,
    Questionnaire,
    QuestionnaireItem,
    assembled_from,
)
from fhirsdc.questionnaire.extensions import (
    ASSEMBLED_FROM_URL,
    extension_key,
    find_extensions,
    merge_unique,
    strip_extensions,
)

# =============================================================================
# Canonical Tests
# =============================================================================


class TestCanonical:
    """Tests for canonical identifier parsing."""

    def test_parse_versioned(self):
        canonical = Canonical.parse("http://example.org/Questionnaire/vitals|2.1")
        assert canonical.url == "http://example.org/Questionnaire/vitals"
        assert canonical.version == "2.1"
        assert canonical.is_pinned

    def test_parse_unversioned(self):
        canonical = Canonical.parse("http://example.org/Questionnaire/vitals")
        assert canonical.version is None
        assert not canonical.is_pinned

    def test_trailing_pipe_is_unversioned(self):
        assert Canonical.parse("urn:mod|").version is None

    def test_str_round_trip(self):
        assert str(Canonical.parse("mod://demo|1.0")) == "mod://demo|1.0"
        assert str(Canonical.parse("mod://demo")) == "mod://demo"

    def test_immutable(self):
        canonical = Canonical.parse("mod://demo")
        with pytest.raises(AttributeError):
            canonical.url = "other"


# =============================================================================
# Item Tests
# =============================================================================


class TestQuestionnaireItem:
    """Tests for item kinds and copying."""

    def test_reference_kind(self):
        item = QuestionnaireItem.model_validate(
            {
                "linkId": "demo-ref",
                "type": "display",
                "extension": [{"url": SUB_QUESTIONNAIRE_URL, "valueCanonical": "urn:mod|1"}],
            }
        )
        assert item.kind is ItemKind.REFERENCE
        assert item.sub_questionnaire == "urn:mod|1"

    def test_reference_wins_over_children(self):
        item = QuestionnaireItem.model_validate(
            {
                "linkId": "r",
                "type": "group",
                "extension": [{"url": SUB_QUESTIONNAIRE_URL, "valueCanonical": "urn:mod"}],
                "item": [{"linkId": "c", "type": "string"}],
            }
        )
        assert item.kind is ItemKind.REFERENCE

    def test_container_and_leaf(self):
        container = QuestionnaireItem.model_validate(
            {"linkId": "g", "type": "group", "item": [{"linkId": "c", "type": "string"}]}
        )
        assert container.kind is ItemKind.CONTAINER
        assert container.item[0].kind is ItemKind.LEAF

    def test_first_canonical_wins(self):
        item = QuestionnaireItem.model_validate(
            {
                "linkId": "r",
                "type": "display",
                "extension": [
                    {"url": SUB_QUESTIONNAIRE_URL},
                    {"url": SUB_QUESTIONNAIRE_URL, "valueCanonical": "urn:first"},
                    {"url": SUB_QUESTIONNAIRE_URL, "valueCanonical": "urn:second"},
                ],
            }
        )
        assert item.sub_questionnaire == "urn:first"

    def test_with_children_copies(self):
        item = QuestionnaireItem.model_validate(
            {
                "linkId": "q",
                "type": "choice",
                "answerOption": [{"valueCoding": {"code": "a"}}],
                "extension": [{"url": "urn:hint", "valueString": "h"}],
            }
        )

        copy = item.with_children(None)
        copy.extension[0].value_string = "changed"

        assert item.extension[0].value_string == "h"
        assert copy.to_fhir()["answerOption"] == [{"valueCoding": {"code": "a"}}]

    def test_unknown_elements_round_trip(self):
        data = {
            "linkId": "q",
            "type": "integer",
            "required": True,
            "enableWhen": [{"question": "x", "operator": "exists", "answerBoolean": True}],
        }
        assert QuestionnaireItem.model_validate(data).to_fhir() == data


# =============================================================================
# Questionnaire Tests
# =============================================================================


class TestQuestionnaire:
    """Tests for the Questionnaire resource model."""

    def test_rejects_other_resource_types(self):
        with pytest.raises(ValidationError):
            Questionnaire.model_validate({"resourceType": "Patient"})

    def test_label(self):
        assert Questionnaire(url="urn:q", version="2").label == "urn:q|2"
        assert Questionnaire(id="abc").label == "abc"
        assert Questionnaire().label == "questionnaire"

    def test_references_in_document_order(self, annual_physical):
        questionnaire = Questionnaire.model_validate(annual_physical)
        assert questionnaire.references() == [
            "http://example.org/fhir/Questionnaire/demographics-module|1.0",
            "http://example.org/fhir/Questionnaire/vitals-module|2.1",
        ]

    def test_iter_items_pre_order(self, annual_physical):
        questionnaire = Questionnaire.model_validate(annual_physical)
        assert [i.link_id for i in questionnaire.iter_items()] == [
            "demo-ref",
            "vitals-ref",
            "local-review",
            "ros-cardio",
            "ros-respiratory",
        ]

    def test_last_updated(self):
        questionnaire = Questionnaire(meta={"lastUpdated": "2024-01-02T00:00:00Z"})
        assert questionnaire.last_updated == "2024-01-02T00:00:00Z"
        assert Questionnaire().last_updated is None


# =============================================================================
# Extension Helper Tests
# =============================================================================


class TestExtensionHelpers:
    """Tests for extension list helpers."""

    def test_key_ignores_key_order(self):
        a = Extension.model_validate({"url": "urn:x", "valueCoding": {"code": "1", "system": "s"}})
        b = Extension.model_validate({"valueCoding": {"system": "s", "code": "1"}, "url": "urn:x"})
        assert extension_key(a) == extension_key(b)

    def test_key_distinguishes_values(self):
        a = Extension(url="urn:x", valueString="1")
        b = Extension(url="urn:x", valueString="2")
        assert extension_key(a) != extension_key(b)

    def test_find_and_strip(self):
        extensions = [
            Extension(url="urn:a", valueString="1"),
            Extension(url="urn:b", valueString="2"),
            Extension(url="urn:a", valueString="3"),
        ]
        assert len(find_extensions(extensions, "urn:a")) == 2
        assert [e.url for e in strip_extensions(extensions, ["urn:a"])] == ["urn:b"]
        assert strip_extensions(None, ["urn:a"]) == []

    def test_merge_unique(self):
        base = [Extension(url="urn:a", valueString="1")]
        additions = [
            Extension(url="urn:a", valueString="1"),
            Extension(url="urn:a", valueString="2"),
            Extension(url="urn:a", valueString="2"),
        ]
        merged = merge_unique(base, additions)
        assert [e.value_string for e in merged] == ["1", "2"]

    def test_assembled_from(self):
        assert assembled_from("urn:mod|1").to_fhir() == {
            "url": ASSEMBLED_FROM_URL,
            "valueCanonical": "urn:mod|1",
        }
