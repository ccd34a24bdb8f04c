from __future__ import annotations

import pytest

from dms_migration.core.errors import InvalidTransition
from dms_migration.core.fields import FieldKey
from dms_migration.core.lifecycle import (
    can_transition,
    count_statuses,
    ensure_editable,
    is_complete,
    is_settled,
    is_skip_allowed,
    transition,
)
from dms_migration.domain import Page, PageStatus, SplitDocument


def _page(status: PageStatus = PageStatus.READY, number: int = 1, image: str | None = "/img.png") -> Page:
    return Page(key=f"page_{number}", number=number, status=status, rendered_image=image)


def test_service_progression_is_forward_only():
    assert can_transition(PageStatus.NEW, PageStatus.SPLIT)
    assert can_transition(PageStatus.SPLIT, PageStatus.IN_OCR)
    assert can_transition(PageStatus.IN_OCR, PageStatus.READY)
    assert not can_transition(PageStatus.READY, PageStatus.NEW)
    assert not can_transition(PageStatus.IN_OCR, PageStatus.SPLIT)


def test_skip_and_reenter_are_the_only_reversible_pair():
    assert can_transition(PageStatus.READY, PageStatus.IGNORE)
    assert can_transition(PageStatus.IGNORE, PageStatus.READY)
    assert not can_transition(PageStatus.PROCESSED, PageStatus.READY)
    assert not can_transition(PageStatus.IGNORE, PageStatus.PROCESSED)


def test_processed_page_cannot_leave_processed():
    page = _page(PageStatus.PROCESSED)
    with pytest.raises(InvalidTransition):
        transition(page, PageStatus.READY)
    assert page.status is PageStatus.PROCESSED


def test_skip_disabled_once_any_identifying_field_is_filled():
    page = _page()
    assert is_skip_allowed(page, {})
    assert is_skip_allowed(page, {FieldKey.TITLE: "   ", FieldKey.SHORT_DESCRIPTION: "note"})
    for key in (FieldKey.TITLE, FieldKey.DRAWING_NUMBER, FieldKey.REVISION_NUMBER, FieldKey.DRAWING_DATE):
        assert not is_skip_allowed(page, {key: "x"})


@pytest.mark.parametrize("status", [PageStatus.NEW, PageStatus.SPLIT, PageStatus.IN_OCR, PageStatus.READY])
def test_skip_allowed_from_any_status_before_upload(status):
    page = _page(status, image=None)
    assert is_skip_allowed(page, {})
    transition(page, PageStatus.IGNORE)
    assert page.status is PageStatus.IGNORE


def test_uploaded_or_skipped_pages_cannot_be_skipped():
    assert not is_skip_allowed(_page(PageStatus.PROCESSED), {})
    assert not is_skip_allowed(_page(PageStatus.IGNORE), {})
    assert not can_transition(PageStatus.PROCESSED, PageStatus.IGNORE)
    assert not can_transition(PageStatus.NEW, PageStatus.PROCESSED)


def test_status_counts_buckets():
    pages = [
        _page(PageStatus.NEW, 1, None),
        _page(PageStatus.SPLIT, 2, None),
        _page(PageStatus.IN_OCR, 3, None),
        _page(PageStatus.READY, 4, None),
        _page(PageStatus.READY, 5),
        _page(PageStatus.PROCESSED, 6),
        _page(PageStatus.IGNORE, 7),
    ]
    counts = count_statuses(pages)
    assert counts.as_dict() == {"pending": 1, "processing": 3, "ready": 1, "uploaded": 1, "skipped": 1}


def test_document_complete_when_every_page_uploaded_or_skipped():
    document = SplitDocument(name="DOC", total_pages=2)
    assert not is_complete(document)
    document.pages = {"page_1": _page(PageStatus.PROCESSED, 1), "page_2": _page(PageStatus.READY, 2)}
    assert not is_complete(document)
    document.pages["page_2"].status = PageStatus.IGNORE
    assert is_complete(document)


def test_settled_once_no_page_is_in_flight():
    document = SplitDocument(name="DOC")
    assert not is_settled(document)
    document.pages = {"page_1": _page(PageStatus.IN_OCR, 1, None)}
    assert not is_settled(document)
    document.pages["page_1"].status = PageStatus.READY
    assert is_settled(document)


def test_terminal_pages_are_not_editable():
    ensure_editable(_page())
    for status in (PageStatus.PROCESSED, PageStatus.IGNORE):
        with pytest.raises(InvalidTransition):
            ensure_editable(_page(status))
