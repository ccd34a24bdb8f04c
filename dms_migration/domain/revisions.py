"""Domain entities for version history and revision candidates."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from dms_migration.core.fields import FieldKey


@dataclass(slots=True)
class FileVersion:
    """One entry of an item's version history, newest first."""

    version_label: str
    revision_marker: str | None = None
    file_name: str | None = None
    drawing_number: str | None = None
    moderation_status: int | None = None
    fields: dict[FieldKey, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SearchHit:
    """A search row reduced to canonical fields."""

    item_id: str
    site_url: str | None = None
    fields: dict[FieldKey, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RevisionCandidate:
    """Advisory result of a revision lookup.

    Only ``match_found`` decides whether a commit needs confirmation; the
    remaining values are suggestions.
    """

    match_found: bool = False
    item_id: str | None = None
    site_url: str | None = None
    existing_versions: tuple[FileVersion, ...] = ()
    next_revision_token: str | None = None
    overwrite_warning_text: str | None = None
    autofill: tuple[tuple[FieldKey, Any], ...] = ()
    search_warning: str | None = None

    @classmethod
    def empty(cls, *, search_warning: str | None = None) -> "RevisionCandidate":
        return cls(search_warning=search_warning)

    @property
    def suggestion(self) -> str | None:
        if not self.next_revision_token:
            return None
        return f"Next Revision code is {self.next_revision_token}"

    def autofill_fields(self) -> dict[FieldKey, Any]:
        return dict(self.autofill)
