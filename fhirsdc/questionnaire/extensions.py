"""
SDC extension URLs and helpers for extension lists.

Extensions are tagged, repeatable annotations. Two entries are the same
extension only when their full JSON content matches, not just their url,
so merging works on a canonical JSON key rather than on the tag.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fhirsdc.questionnaire.schemas import Extension

SDC_BASE = "http://hl7.org/fhir/uv/sdc/StructureDefinition"

SUB_QUESTIONNAIRE_URL = f"{SDC_BASE}/sdc-questionnaire-subQuestionnaire"
ASSEMBLE_EXPECTATION_URL = f"{SDC_BASE}/sdc-questionnaire-assemble-expectation"
ASSEMBLED_FROM_URL = f"{SDC_BASE}/sdc-questionnaire-assembledFrom"

# Never copied from a sub-questionnaire onto the assembled root
NON_PROPAGATED_URLS = frozenset(
    {
        SUB_QUESTIONNAIRE_URL,
        ASSEMBLE_EXPECTATION_URL,
        ASSEMBLED_FROM_URL,
    }
)


def extension_key(extension: Extension) -> str:
    """Canonical JSON form of an extension, used for structural equality."""
    return json.dumps(
        extension.model_dump(by_alias=True, exclude_none=True, mode="json"),
        sort_keys=True,
        separators=(",", ":"),
    )


def find_extensions(
    extensions: Iterable[Extension] | None,
    url: str,
) -> list[Extension]:
    """Return every extension in the list carrying the given url."""
    return [ext for ext in extensions or () if ext.url == url]


def strip_extensions(
    extensions: Iterable[Extension] | None,
    urls: Iterable[str],
) -> list[Extension]:
    """Return copies of the extensions whose url is not in `urls`."""
    excluded = frozenset(urls)
    return [ext.model_copy(deep=True) for ext in extensions or () if ext.url not in excluded]


def merge_unique(
    base: list[Extension],
    additions: Iterable[Extension],
) -> list[Extension]:
    """
    Append additions to base, skipping structural duplicates.

    Entries already in `base` are left alone (duplicates included); only
    additions are checked against base and against each other. Order is
    preserved: base first, then additions in the order given.
    """
    merged = list(base)
    seen = {extension_key(ext) for ext in merged}

    for ext in additions:
        key = extension_key(ext)
        if key in seen:
            continue
        seen.add(key)
        merged.append(ext.model_copy(deep=True))

    return merged
