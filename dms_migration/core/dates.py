from __future__ import annotations

from datetime import date, datetime
from typing import Any

_FORMATS = ("%m/%d/%Y", "%Y-%m-%d", "%d.%m.%Y")


def parse_date(value: Any) -> date | None:
    """Parse repository, ISO or ``M/D/YYYY`` values. Unparseable input returns ``None``."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_repository_date(value: Any) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return ""
    return parsed.strftime("%m/%d/%Y")
