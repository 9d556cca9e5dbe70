"""
Pydantic models for FHIR R4 Questionnaire trees.

Only the elements the assembler reasons about are declared; everything
else a Questionnaire may carry (text, required, answerOption, enableWhen,
value[x] variants, ...) is kept verbatim as extra fields so a document
survives a load/dump round-trip unchanged.

Serialize with `to_fhir()`, which uses FHIR's camelCase names and drops
absent elements.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from fhirsdc.questionnaire.extensions import SUB_QUESTIONNAIRE_URL, find_extensions

# =============================================================================
# Canonical identifiers
# =============================================================================


@dataclass(frozen=True, slots=True)
class Canonical:
    """
    A canonical identifier: `url` or `url|version`.

    Example:
        >>> Canonical.parse("http://example.org/Questionnaire/vitals|2.1")
        Canonical(url='http://example.org/Questionnaire/vitals', version='2.1')
    """

    url: str
    version: str | None = None

    @classmethod
    def parse(cls, value: str) -> Canonical:
        """Split a canonical string on its first `|`."""
        url, sep, version = value.strip().partition("|")
        return cls(url=url, version=version if sep and version else None)

    @property
    def is_pinned(self) -> bool:
        """Whether a specific version was requested."""
        return self.version is not None

    def __str__(self) -> str:
        if self.version:
            return f"{self.url}|{self.version}"
        return self.url


# =============================================================================
# Tree nodes
# =============================================================================


class ItemKind(str, Enum):
    """Structural role of an item during assembly."""

    REFERENCE = "reference"  # replaced by a sub-questionnaire's items
    CONTAINER = "container"  # has child items of its own
    LEAF = "leaf"


class FhirModel(BaseModel):
    """Base for FHIR elements: camelCase aliases, unknown elements kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_fhir(self) -> dict[str, Any]:
        """Dump as FHIR JSON (camelCase, absent elements omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Extension(FhirModel):
    """
    A FHIR extension.

    The value[x] variants used by SDC modular forms are declared; any other
    variant (valueExpression, valueCoding, ...) and nested extensions are
    kept as extra fields.
    """

    url: str
    value_canonical: str | None = Field(None, alias="valueCanonical")
    value_code: str | None = Field(None, alias="valueCode")
    value_string: str | None = Field(None, alias="valueString")


class QuestionnaireItem(FhirModel):
    """A node in a Questionnaire's item tree."""

    link_id: str = Field(..., alias="linkId")
    type: str
    text: str | None = None
    extension: list[Extension] | None = None
    item: list[QuestionnaireItem] | None = None

    @property
    def sub_questionnaire(self) -> str | None:
        """Canonical of the referenced sub-questionnaire, if this is a reference."""
        for ext in find_extensions(self.extension, SUB_QUESTIONNAIRE_URL):
            if ext.value_canonical:
                return ext.value_canonical
        return None

    @property
    def kind(self) -> ItemKind:
        """Reference, container or leaf."""
        if self.sub_questionnaire is not None:
            return ItemKind.REFERENCE
        if self.item:
            return ItemKind.CONTAINER
        return ItemKind.LEAF

    def with_children(self, children: list[QuestionnaireItem] | None) -> QuestionnaireItem:
        """
        Build a fresh copy of this item with the given children.

        Everything but the children is copied through a dump, so the new
        item shares no mutable state with this one.
        """
        data = self.model_dump(by_alias=True, exclude={"item"})
        return QuestionnaireItem.model_validate({**data, "item": children})


class Questionnaire(FhirModel):
    """A FHIR Questionnaire resource (the Form Document)."""

    resource_type: Literal["Questionnaire"] = Field("Questionnaire", alias="resourceType")
    id: str | None = None
    meta: dict[str, Any] | None = None
    url: str | None = None
    version: str | None = None
    name: str | None = None
    title: str | None = None
    status: str | None = None
    extension: list[Extension] | None = None
    item: list[QuestionnaireItem] | None = None

    @property
    def canonical(self) -> Canonical | None:
        """This document's own canonical, if it has a url."""
        if not self.url:
            return None
        return Canonical(url=self.url, version=self.version)

    @property
    def label(self) -> str:
        """Short human-readable name for log and progress messages."""
        if self.canonical is not None:
            return str(self.canonical)
        return self.id or self.title or "questionnaire"

    @property
    def last_updated(self) -> str | None:
        """`meta.lastUpdated`, if present."""
        if not self.meta:
            return None
        return self.meta.get("lastUpdated")

    def iter_items(self):
        """Yield every item in the tree, depth-first pre-order."""
        stack = list(reversed(self.item or []))
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.item or []))

    def references(self) -> list[str]:
        """Canonicals referenced anywhere in the tree, in document order."""
        return [
            item.sub_questionnaire
            for item in self.iter_items()
            if item.kind is ItemKind.REFERENCE
        ]
