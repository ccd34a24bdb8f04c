"""Domain entities for split documents and their pages."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from dms_migration.core.fields import FieldKey


class PageStatus(str, Enum):
    NEW = "NEW"
    SPLIT = "SPLIT"
    IN_OCR = "IN OCR"
    READY = "READY"
    PROCESSED = "PROCESSED"
    IGNORE = "IGNORE"


@dataclass(slots=True)
class Page:
    """Status snapshot for one page as reported by the split job service."""

    key: str
    number: int
    status: PageStatus = PageStatus.NEW
    rendered_image: str | None = None
    pdf_uri: str | None = None
    repository_id: str | None = None
    suggested_values: dict[str, list[str]] = field(default_factory=dict)


@dataclass(slots=True)
class StatusCounts:
    pending: int = 0
    processing: int = 0
    ready: int = 0
    uploaded: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "processing": self.processing,
            "ready": self.ready,
            "uploaded": self.uploaded,
            "skipped": self.skipped,
        }


@dataclass(slots=True)
class SplitDocument:
    """Aggregate for one source PDF being split into pages.

    ``pages`` is replaced wholesale by every poll snapshot. User input lives
    in ``common_fields`` and ``page_fields`` so a snapshot never touches it.
    ``version`` increases on every local mutation of page state.
    """

    name: str
    total_pages: int = 0
    pages: dict[str, Page] = field(default_factory=dict)
    common_fields: dict[FieldKey, Any] = field(default_factory=dict)
    page_fields: dict[str, dict[FieldKey, Any]] = field(default_factory=dict)
    touched_fields: set[FieldKey] = field(default_factory=set)
    version: int = 0

    def bump(self) -> int:
        self.version += 1
        return self.version

    def fields_for(self, page_key: str) -> dict[FieldKey, Any]:
        return self.page_fields.setdefault(page_key, {})

    def page_keys(self) -> list[str]:
        return sorted(self.pages, key=lambda key: self.pages[key].number)


@dataclass(slots=True)
class SavedMetadata:
    """Progress persisted between sessions."""

    common: dict[FieldKey, Any] = field(default_factory=dict)
    pages: dict[int, dict[FieldKey, Any]] = field(default_factory=dict)


@dataclass(slots=True)
class SplitSnapshot:
    total_pages: int
    pages: dict[str, Page] = field(default_factory=dict)
