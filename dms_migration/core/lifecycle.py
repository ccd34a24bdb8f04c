"""Page lifecycle rules."""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from dms_migration.core.errors import InvalidTransition
from dms_migration.core.fields import SKIP_BLOCKING_FIELDS, FieldKey, is_blank
from dms_migration.domain import Page, PageStatus, SplitDocument, StatusCounts

# Forward-only service progression plus the user-driven skip / re-enter pair.
TRANSITIONS: dict[PageStatus, frozenset[PageStatus]] = {
    PageStatus.NEW: frozenset({PageStatus.SPLIT, PageStatus.IGNORE}),
    PageStatus.SPLIT: frozenset({PageStatus.IN_OCR, PageStatus.IGNORE}),
    PageStatus.IN_OCR: frozenset({PageStatus.READY, PageStatus.IGNORE}),
    PageStatus.READY: frozenset({PageStatus.PROCESSED, PageStatus.IGNORE}),
    PageStatus.IGNORE: frozenset({PageStatus.READY}),
    PageStatus.PROCESSED: frozenset(),
}

TRANSITIONAL_STATUSES = frozenset({PageStatus.NEW, PageStatus.SPLIT, PageStatus.IN_OCR})
TERMINAL_STATUSES = frozenset({PageStatus.PROCESSED, PageStatus.IGNORE})


def transitions() -> dict[PageStatus, frozenset[PageStatus]]:
    return dict(TRANSITIONS)


def can_transition(current: PageStatus, target: PageStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def transition(page: Page, target: PageStatus) -> Page:
    if not can_transition(page.status, target):
        raise InvalidTransition(f"page {page.key} cannot move from {page.status.value} to {target.value}")
    page.status = target
    return page


def is_skip_allowed(page: Page, fields: Mapping[FieldKey, Any]) -> bool:
    """Any page not yet uploaded or skipped may be skipped while its identifying fields are empty."""

    if page.status in TERMINAL_STATUSES:
        return False
    return all(is_blank(fields.get(key)) for key in SKIP_BLOCKING_FIELDS)


def is_interactive(page: Page) -> bool:
    return page.status is PageStatus.READY and bool(page.rendered_image)


def ensure_editable(page: Page) -> None:
    if page.status in TERMINAL_STATUSES:
        raise InvalidTransition(f"page {page.key} is {page.status.value} and can no longer be edited")


def count_statuses(pages: Iterable[Page]) -> StatusCounts:
    counts = StatusCounts()
    for page in pages:
        if page.status is PageStatus.NEW:
            counts.pending += 1
        elif page.status is PageStatus.PROCESSED:
            counts.uploaded += 1
        elif page.status is PageStatus.IGNORE:
            counts.skipped += 1
        elif page.status in TRANSITIONAL_STATUSES or not page.rendered_image:
            counts.processing += 1
        else:
            counts.ready += 1
    return counts


def is_settled(document: SplitDocument) -> bool:
    """True once the service has reported pages and none are still being processed."""

    if not document.pages:
        return False
    return not any(page.status in TRANSITIONAL_STATUSES for page in document.pages.values())


def is_complete(document: SplitDocument) -> bool:
    counts = count_statuses(document.pages.values())
    total = document.total_pages or len(document.pages)
    return total > 0 and counts.uploaded + counts.skipped == total


__all__ = [
    "TERMINAL_STATUSES",
    "TRANSITIONAL_STATUSES",
    "TRANSITIONS",
    "can_transition",
    "count_statuses",
    "ensure_editable",
    "is_complete",
    "is_interactive",
    "is_settled",
    "is_skip_allowed",
    "transition",
    "transitions",
]
