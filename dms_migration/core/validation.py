from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from dms_migration.core.dates import parse_date
from dms_migration.core.errors import ValidationFailed
from dms_migration.core.fields import (
    COMMON_REQUIRED_FIELDS,
    DRAWING_COMMON_REQUIRED_FIELDS,
    PAGE_REQUIRED_FIELDS,
    FieldKey,
    is_blank,
    is_drawing,
)

DEFAULT_MIN_DATE = date(2016, 1, 1)


def _date_errors(
    fields: Mapping[FieldKey, Any],
    *,
    today: date,
    min_date: date,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    parsed: dict[FieldKey, date] = {}
    for key in (FieldKey.DRAWING_DATE, FieldKey.DRAWING_RECEIVED_DATE):
        raw = fields.get(key)
        if is_blank(raw):
            errors[key.value] = "is required"
            continue
        value = parse_date(raw)
        if value is None:
            errors[key.value] = "is not a valid date"
        elif value < min_date:
            errors[key.value] = f"must not be before {min_date.isoformat()}"
        elif value > today:
            errors[key.value] = "must not be in the future"
        else:
            parsed[key] = value

    drawn = parsed.get(FieldKey.DRAWING_DATE)
    received = parsed.get(FieldKey.DRAWING_RECEIVED_DATE)
    if drawn and received and drawn > received:
        errors[FieldKey.DRAWING_DATE.value] = "must not be after the received date"
    return errors


def page_errors(
    fields: Mapping[FieldKey, Any],
    *,
    today: date | None = None,
    min_date: date = DEFAULT_MIN_DATE,
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not is_drawing(fields.get(FieldKey.DOCUMENT_TYPE)):
        for key in (FieldKey.TITLE, FieldKey.DRAWING_NUMBER):
            if is_blank(fields.get(key)):
                errors[key.value] = "is required"
        return errors

    for key in PAGE_REQUIRED_FIELDS:
        if key in (FieldKey.DRAWING_DATE, FieldKey.DRAWING_RECEIVED_DATE):
            continue
        if is_blank(fields.get(key)):
            errors[key.value] = "is required"
    errors.update(_date_errors(fields, today=today or date.today(), min_date=min_date))
    return errors


def common_errors(fields: Mapping[FieldKey, Any]) -> dict[str, str]:
    required = list(COMMON_REQUIRED_FIELDS)
    if is_drawing(fields.get(FieldKey.DOCUMENT_TYPE)):
        required.extend(DRAWING_COMMON_REQUIRED_FIELDS)
    return {key.value: "is required" for key in required if is_blank(fields.get(key))}


def validate_page(
    fields: Mapping[FieldKey, Any],
    *,
    today: date | None = None,
    min_date: date = DEFAULT_MIN_DATE,
) -> None:
    """Validate a page commit: document-level and page-level requirements together."""

    errors = common_errors(fields)
    errors.update(page_errors(fields, today=today, min_date=min_date))
    if errors:
        raise ValidationFailed(errors)


def validate_document(fields: Mapping[FieldKey, Any]) -> None:
    errors = common_errors(fields)
    if errors:
        raise ValidationFailed(errors)
