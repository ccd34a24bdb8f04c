"""Revision lookup against the content repository."""
from __future__ import annotations

import logging
from typing import Any, Mapping

from dms_migration.application.documents import DocumentSession
from dms_migration.application.metadata import apply_autofill
from dms_migration.core.errors import DmsError
from dms_migration.core.fields import AUTOFILL_FIELDS, IDENTIFYING_FIELDS, FieldKey, is_blank, is_drawing, term_label
from dms_migration.core.lifecycle import TERMINAL_STATUSES
from dms_migration.core.revision import TOO_MANY_RESULTS, RevisionSuccessor, first_character_successor, overwrite_warning
from dms_migration.core.terms import TermStore
from dms_migration.domain import RevisionCandidate
from dms_migration.infrastructure.repository import ContentRepository

logger = logging.getLogger(__name__)


def _identity(fields: Mapping[FieldKey, Any]) -> dict[FieldKey, str]:
    keys = (*IDENTIFYING_FIELDS, FieldKey.DOCUMENT_TYPE)
    return {key: term_label(fields.get(key)) for key in keys}


class RevisionResolver:
    """Finds the repository file a page would add a version to.

    ``evaluate`` has no side effects, so the same inputs always produce an
    equal candidate. ``schedule`` debounces evaluation for open documents and
    keeps ``session.revision_candidates`` in step with the latest fields.
    """

    def __init__(
        self,
        repository: ContentRepository,
        terms: TermStore,
        *,
        row_limit: int = 50,
        successor: RevisionSuccessor = first_character_successor,
        delay: float = 0.3,
    ) -> None:
        self._repository = repository
        self._terms = terms
        self._row_limit = row_limit
        self._successor = successor
        self._delay = delay

    async def evaluate(self, fields: Mapping[FieldKey, Any]) -> RevisionCandidate:
        if not is_drawing(fields.get(FieldKey.DOCUMENT_TYPE)):
            return RevisionCandidate.empty()
        criteria = {key: term_label(fields.get(key)) for key in IDENTIFYING_FIELDS}
        if any(not value for value in criteria.values()):
            return RevisionCandidate.empty()

        hits = await self._repository.search_items(criteria, self._row_limit)
        search_warning = TOO_MANY_RESULTS if len(hits) >= self._row_limit else None
        if not hits:
            return RevisionCandidate.empty(search_warning=search_warning)

        hit = hits[0]
        site_url = hit.site_url
        if not site_url:
            site = self._terms.find_site(criteria[FieldKey.SITE])
            if site is None:
                return RevisionCandidate.empty(search_warning=search_warning)
            site_url = site.url

        versions = await self._repository.list_item_versions(site_url, hit.item_id)
        if not versions:
            return RevisionCandidate.empty(search_warning=search_warning)

        latest = versions[0]
        marker = (latest.revision_marker or term_label(hit.fields.get(FieldKey.REVISION_NUMBER))).strip()
        identity = {key: term_label(hit.fields.get(key)) or criteria.get(key, "") for key in IDENTIFYING_FIELDS}
        warning = overwrite_warning(
            [
                identity[FieldKey.DEPARTMENT],
                identity[FieldKey.DRAWING_AREA],
                identity[FieldKey.DRAWING_NUMBER],
                identity[FieldKey.TITLE],
                marker,
            ]
        )
        autofill = tuple(
            (key, latest.fields[key]) for key in AUTOFILL_FIELDS if not is_blank(latest.fields.get(key))
        )
        candidate = RevisionCandidate(
            match_found=True,
            item_id=hit.item_id,
            site_url=site_url,
            existing_versions=tuple(versions),
            next_revision_token=self._successor(marker) if marker else None,
            overwrite_warning_text=warning,
            autofill=autofill,
            search_warning=search_warning,
        )
        logger.info("revision match %s for %s, next %s", hit.item_id, criteria[FieldKey.TITLE], candidate.next_revision_token)
        return candidate

    # ------------------------------------------------------------------
    # debounced evaluation for open documents
    # ------------------------------------------------------------------
    def schedule(self, session: DocumentSession, page_key: str | None = None) -> None:
        if session.closed:
            return
        if page_key is None:
            keys = [
                key for key, page in session.document.pages.items() if page.status not in TERMINAL_STATUSES
            ]
        else:
            keys = [page_key]
        for key in keys:
            debouncer = session.debouncer(f"revision:{key}", self._delay, self.refresh_page)
            debouncer.trigger(session, key)

    async def refresh_page(self, session: DocumentSession, page_key: str) -> RevisionCandidate:
        fields = session.merged_fields(page_key)
        try:
            candidate = await self.evaluate(fields)
        except DmsError as exc:
            logger.warning("revision lookup for %s/%s failed: %s", session.name, page_key, exc)
            candidate = RevisionCandidate.empty()

        async with session.lock:
            if session.closed:
                return candidate
            if _identity(session.merged_fields(page_key)) != _identity(fields):
                # superseded by a newer edit, which has its own evaluation queued
                return candidate
            if candidate.match_found:
                session.revision_candidates[page_key] = candidate
                apply_autofill(session.document, candidate)
            else:
                session.revision_candidates.pop(page_key, None)
        return candidate
