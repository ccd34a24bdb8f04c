"""Canonical metadata field keys and the groups they belong to."""
from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Any, Iterable, Mapping


class FieldKey(str, Enum):
    TITLE = "title"
    BUSINESS = "business"
    DEPARTMENT = "department"
    SITE = "site"
    DOCUMENT_TYPE = "document_type"
    DRAWING_SET_NAME = "drawing_set_name"
    DRAWING_AREA = "drawing_area"
    DRAWING_NUMBER = "drawing_number"
    REVISION_NUMBER = "revision_number"
    DRAWING_DATE = "drawing_date"
    DRAWING_RECEIVED_DATE = "drawing_received_date"
    SHORT_DESCRIPTION = "short_description"
    BUILDING = "building"
    VILLA = "villa"
    PARK_STAGE = "park_stage"
    GATE = "gate"
    DISCIPLINE = "discipline"
    CONFIDENTIALITY = "confidentiality"


DRAWING_DOCUMENT_TYPE = "Drawing"
RESIDENTIAL_MARKER = "Residential"

# Fields shared by every page of a split document.
COMMON_FIELDS: frozenset[FieldKey] = frozenset(
    {
        FieldKey.BUSINESS,
        FieldKey.DEPARTMENT,
        FieldKey.SITE,
        FieldKey.DOCUMENT_TYPE,
        FieldKey.DRAWING_SET_NAME,
        FieldKey.DRAWING_AREA,
        FieldKey.DRAWING_DATE,
        FieldKey.DRAWING_RECEIVED_DATE,
        FieldKey.BUILDING,
        FieldKey.VILLA,
        FieldKey.PARK_STAGE,
        FieldKey.GATE,
        FieldKey.DISCIPLINE,
        FieldKey.CONFIDENTIALITY,
    }
)

PAGE_FIELDS: frozenset[FieldKey] = frozenset(
    {
        FieldKey.TITLE,
        FieldKey.DRAWING_NUMBER,
        FieldKey.REVISION_NUMBER,
        FieldKey.DRAWING_DATE,
        FieldKey.DRAWING_RECEIVED_DATE,
        FieldKey.SHORT_DESCRIPTION,
    }
)

DATE_FIELDS: tuple[FieldKey, ...] = (FieldKey.DRAWING_DATE, FieldKey.DRAWING_RECEIVED_DATE)

# Any of these being set on a page means the user has started work on it.
SKIP_BLOCKING_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.TITLE,
    FieldKey.DRAWING_NUMBER,
    FieldKey.REVISION_NUMBER,
    FieldKey.DRAWING_DATE,
)

IDENTIFYING_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.TITLE,
    FieldKey.BUSINESS,
    FieldKey.DEPARTMENT,
    FieldKey.SITE,
    FieldKey.DRAWING_NUMBER,
    FieldKey.DRAWING_AREA,
)

AUTOFILL_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.BUILDING,
    FieldKey.PARK_STAGE,
    FieldKey.GATE,
    FieldKey.VILLA,
    FieldKey.DISCIPLINE,
    FieldKey.CONFIDENTIALITY,
)

RESIDENTIAL_FIELDS: tuple[FieldKey, ...] = (FieldKey.VILLA,)
NON_RESIDENTIAL_FIELDS: tuple[FieldKey, ...] = (FieldKey.BUILDING,)

PAGE_REQUIRED_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.TITLE,
    FieldKey.DRAWING_NUMBER,
    FieldKey.REVISION_NUMBER,
    FieldKey.DRAWING_DATE,
    FieldKey.DRAWING_RECEIVED_DATE,
)

COMMON_REQUIRED_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.BUSINESS,
    FieldKey.DEPARTMENT,
    FieldKey.SITE,
    FieldKey.DOCUMENT_TYPE,
)

DRAWING_COMMON_REQUIRED_FIELDS: tuple[FieldKey, ...] = (
    FieldKey.DRAWING_SET_NAME,
    FieldKey.DRAWING_AREA,
)


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return not value
    return False


def term_label(value: Any) -> str:
    """Return the display label of a ``"label|guid"`` term value."""

    if value is None:
        return ""
    if isinstance(value, date):
        return value.isoformat()
    text = str(value)
    return text.split("|", 1)[0].strip()


def is_drawing(document_type: Any) -> bool:
    return DRAWING_DOCUMENT_TYPE.lower() in term_label(document_type).lower()


def is_residential(department: Any) -> bool:
    return RESIDENTIAL_MARKER.lower() in term_label(department).lower()


def coerce_field_key(key: str | FieldKey) -> FieldKey:
    if isinstance(key, FieldKey):
        return key
    try:
        return FieldKey(key)
    except ValueError:
        normalised = key.strip().lower().replace(" ", "_")
        return FieldKey(normalised)


def non_empty(fields: Mapping[FieldKey, Any]) -> dict[FieldKey, Any]:
    return {key: value for key, value in fields.items() if not is_blank(value)}


def pick(fields: Mapping[FieldKey, Any], keys: Iterable[FieldKey]) -> dict[FieldKey, Any]:
    return {key: fields.get(key) for key in keys}


__all__ = [
    "AUTOFILL_FIELDS",
    "COMMON_FIELDS",
    "COMMON_REQUIRED_FIELDS",
    "DATE_FIELDS",
    "DRAWING_COMMON_REQUIRED_FIELDS",
    "DRAWING_DOCUMENT_TYPE",
    "FieldKey",
    "IDENTIFYING_FIELDS",
    "NON_RESIDENTIAL_FIELDS",
    "PAGE_FIELDS",
    "PAGE_REQUIRED_FIELDS",
    "RESIDENTIAL_FIELDS",
    "SKIP_BLOCKING_FIELDS",
    "coerce_field_key",
    "is_blank",
    "is_drawing",
    "is_residential",
    "non_empty",
    "pick",
    "term_label",
]
