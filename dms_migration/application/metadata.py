"""Field edits, date propagation and restore of saved progress."""
from __future__ import annotations

import logging
from typing import Any, Callable

from dms_migration.application.documents import DocumentSession
from dms_migration.core.dates import parse_date
from dms_migration.core.fields import (
    DATE_FIELDS,
    IDENTIFYING_FIELDS,
    NON_RESIDENTIAL_FIELDS,
    RESIDENTIAL_FIELDS,
    FieldKey,
    coerce_field_key,
    is_blank,
    is_residential,
)
from dms_migration.core.lifecycle import TERMINAL_STATUSES, ensure_editable
from dms_migration.domain import RevisionCandidate, SavedMetadata, SplitDocument

logger = logging.getLogger(__name__)

IdentityListener = Callable[[DocumentSession, "str | None"], None]

# Changes to these fields can change which repository file a page maps to.
_IDENTITY_FIELDS = frozenset({*IDENTIFYING_FIELDS, FieldKey.DOCUMENT_TYPE})


def apply_autofill(document: SplitDocument, candidate: RevisionCandidate) -> list[FieldKey]:
    """Fill untouched, empty common fields from the matched file's latest version."""

    filled: list[FieldKey] = []
    for key, value in candidate.autofill:
        if key in document.touched_fields or not is_blank(document.common_fields.get(key)):
            continue
        document.common_fields[key] = value
        filled.append(key)
    return filled


class MetadataPropagator:
    """Applies field edits to an open document and fans date values out to pages."""

    def __init__(self, *, delay: float = 0.1) -> None:
        self._delay = delay
        self._listeners: list[IdentityListener] = []

    def subscribe(self, listener: IdentityListener) -> None:
        self._listeners.append(listener)

    async def change_field(
        self,
        session: DocumentSession,
        key: str | FieldKey,
        value: Any,
        *,
        page_key: str | None = None,
    ) -> None:
        session.ensure_open()
        field_key = coerce_field_key(key)
        async with session.lock:
            document = session.document
            if page_key is not None:
                ensure_editable(session.page(page_key))
                document.fields_for(page_key)[field_key] = value
            else:
                document.common_fields[field_key] = value
                document.touched_fields.add(field_key)
                if field_key is FieldKey.DEPARTMENT:
                    self._clear_other_category(document)

        if page_key is None and field_key in DATE_FIELDS:
            debouncer = session.debouncer(f"propagate:{field_key.value}", self._delay, self.propagate)
            debouncer.trigger(session, field_key)

        if field_key in _IDENTITY_FIELDS:
            for listener in self._listeners:
                listener(session, page_key)

    @staticmethod
    def _clear_other_category(document: SplitDocument) -> None:
        stale = NON_RESIDENTIAL_FIELDS if is_residential(document.common_fields.get(FieldKey.DEPARTMENT)) else RESIDENTIAL_FIELDS
        for key in stale:
            document.common_fields.pop(key, None)
            for fields in document.page_fields.values():
                fields.pop(key, None)

    async def propagate(self, session: DocumentSession, key: FieldKey) -> list[str]:
        """Copy the current common value of a date field into every page that has none."""

        async with session.lock:
            if session.closed:
                return []
            document = session.document
            value = document.common_fields.get(key)
            if is_blank(value) or session.last_propagated.get(key) == value:
                return []
            updated: list[str] = []
            for page_key in document.page_keys():
                if document.pages[page_key].status in TERMINAL_STATUSES:
                    continue
                fields = document.fields_for(page_key)
                if is_blank(fields.get(key)):
                    fields[key] = value
                    updated.append(page_key)
            session.last_propagated[key] = value
        logger.debug("propagated %s to %d pages of %s", key.value, len(updated), session.name)
        return updated

    async def restore(self, session: DocumentSession, saved: SavedMetadata) -> None:
        """Load saved progress; empty values are skipped and absent fields are left alone."""

        async with session.lock:
            document = session.document
            for key, value in saved.common.items():
                restored = self._restored_value(key, value)
                if restored is None:
                    continue
                document.common_fields[key] = restored
                document.touched_fields.add(key)
            for number, fields in saved.pages.items():
                target = document.fields_for(f"page_{number}")
                for key, value in fields.items():
                    restored = self._restored_value(key, value)
                    if restored is not None:
                        target[key] = restored

    @staticmethod
    def _restored_value(key: FieldKey, value: Any) -> Any:
        if not value:
            return None
        if key in DATE_FIELDS:
            parsed = parse_date(value)
            if parsed is None:
                logger.warning("ignoring unparseable saved %s value %r", key.value, value)
            return parsed
        return value
