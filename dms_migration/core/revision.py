"""Revision marker successors and search filter construction."""
from __future__ import annotations

import string
from typing import Callable, Iterable, Mapping

RevisionSuccessor = Callable[[str], "str | None"]

TOO_MANY_RESULTS = "Too many results - select more filters."
DOCUMENT_LIBRARY_CLASS = "contentclass:STS_ListItem_DocumentLibrary"


def first_character_successor(marker: str) -> str | None:
    """Advance the first character of the marker by one code point.

    ``"B"`` becomes ``"C"`` and ``"3"`` becomes ``"4"``. Multi-character
    markers only look at their first character, and ``"Z"`` becomes ``"["``.
    """

    marker = (marker or "").strip()
    if not marker:
        return None
    return chr(ord(marker[0]) + 1)


def strict_alpha_successor(marker: str) -> str | None:
    """Successor for single-letter markers only; anything else has no suggestion."""

    marker = (marker or "").strip()
    if len(marker) != 1 or marker not in string.ascii_letters:
        return None
    if marker in "zZ":
        return None
    return chr(ord(marker) + 1)


SUCCESSORS: dict[str, RevisionSuccessor] = {
    "first_character": first_character_successor,
    "strict_alpha": strict_alpha_successor,
}


def get_successor(name: str) -> RevisionSuccessor:
    try:
        return SUCCESSORS[name]
    except KeyError as exc:
        raise ValueError(f"unknown revision successor '{name}'") from exc


def overwrite_warning(parts: Iterable[str]) -> str:
    return "This upload will add a version to file " + "–".join(parts)


def _quote(value: str) -> str:
    return value.replace('"', '\\"')


def build_filter_expression(clauses: Mapping[str, str], *, hub_site_id: str | None = None) -> str:
    """Join exact-match ``name="value"`` clauses and append the library scope."""

    parts = [f'{name}="{_quote(value)}"' for name, value in clauses.items()]
    parts.append(DOCUMENT_LIBRARY_CLASS)
    if hub_site_id:
        parts.append(f"(RelatedHubSites:{hub_site_id})")
        parts.append(f"(-SiteId:{hub_site_id})")
    return " ".join(parts)


__all__ = [
    "RevisionSuccessor",
    "SUCCESSORS",
    "TOO_MANY_RESULTS",
    "build_filter_expression",
    "first_character_successor",
    "get_successor",
    "overwrite_warning",
    "strict_alpha_successor",
]
