from __future__ import annotations

import asyncio

from dms_migration.application import RevisionResolver
from dms_migration.core.fields import FieldKey
from dms_migration.core.revision import TOO_MANY_RESULTS
from dms_migration.domain import FileVersion, Page, PageStatus

SITE_URL = "https://contoso.sharepoint.com/sites/PalmResort"


def _seed(repo, marker: str = "B"):
    return repo.add_item(
        SITE_URL,
        "RoofPlan.pdf",
        folder=["Drawings", "A1"],
        fields={
            FieldKey.TITLE: "RoofPlan",
            FieldKey.BUSINESS: "B1",
            FieldKey.DEPARTMENT: "D1",
            FieldKey.SITE: "Palm Resort",
            FieldKey.DRAWING_NUMBER: "D-100",
            FieldKey.DRAWING_AREA: "A1",
            FieldKey.DOCUMENT_TYPE: "Drawing|guid-drawing",
            FieldKey.REVISION_NUMBER: marker,
        },
        versions=[
            FileVersion(
                version_label="2.0",
                revision_marker=marker,
                moderation_status=0,
                fields={
                    FieldKey.DISCIPLINE: "Architectural|guid-arch",
                    FieldKey.BUILDING: "Block 7|guid-b7",
                    FieldKey.GATE: "",
                },
            ),
            FileVersion(version_label="1.0", revision_marker="A", moderation_status=0),
        ],
    )


def test_existing_drawing_suggests_next_revision(services, repo, drawing_fields):
    item = _seed(repo)

    candidate = asyncio.run(services.resolver.evaluate(drawing_fields()))

    assert candidate.match_found
    assert candidate.item_id == item.item_id
    assert candidate.site_url == SITE_URL
    assert candidate.next_revision_token == "C"
    assert candidate.suggestion == "Next Revision code is C"
    assert candidate.overwrite_warning_text == "This upload will add a version to file D1–A1–D-100–RoofPlan–B"
    assert [version.version_label for version in candidate.existing_versions] == ["2.0", "1.0"]
    assert candidate.autofill_fields() == {
        FieldKey.BUILDING: "Block 7|guid-b7",
        FieldKey.DISCIPLINE: "Architectural|guid-arch",
    }
    assert candidate.search_warning is None


def test_evaluation_is_idempotent(services, repo, drawing_fields):
    _seed(repo)

    async def scenario():
        first = await services.resolver.evaluate(drawing_fields())
        second = await services.resolver.evaluate(drawing_fields())
        return first, second

    first, second = asyncio.run(scenario())
    assert first == second


def test_non_drawings_are_never_looked_up(services, repo, drawing_fields):
    _seed(repo)
    fields = drawing_fields(**{FieldKey.DOCUMENT_TYPE: "Specification|guid-spec"})

    candidate = asyncio.run(services.resolver.evaluate(fields))

    assert not candidate.match_found
    assert "search_items" not in repo.calls


def test_missing_identifying_field_skips_lookup(services, repo, drawing_fields):
    _seed(repo)

    candidate = asyncio.run(services.resolver.evaluate(drawing_fields(**{FieldKey.DRAWING_AREA: " "})))

    assert candidate == candidate.empty()
    assert repo.calls == []


def test_no_match_returns_empty_candidate(services, repo, drawing_fields):
    _seed(repo)

    candidate = asyncio.run(services.resolver.evaluate(drawing_fields(**{FieldKey.DRAWING_NUMBER: "D-999"})))

    assert not candidate.match_found
    assert candidate.suggestion is None
    assert repo.calls == ["search_items"]


def test_row_limit_reports_too_many_results(repo, terms, drawing_fields):
    _seed(repo)
    resolver = RevisionResolver(repo, terms, row_limit=1)

    candidate = asyncio.run(resolver.evaluate(drawing_fields()))

    assert candidate.match_found
    assert candidate.search_warning == TOO_MANY_RESULTS


def test_emptied_identifying_field_clears_candidate(services, repo, drawing_fields):
    _seed(repo)

    async def scenario():
        session = services.registry.open("DOC-1")
        session.document.pages = {"page_1": Page(key="page_1", number=1, status=PageStatus.READY, rendered_image="/1.png")}
        session.document.page_fields["page_1"] = drawing_fields()
        await services.resolver.refresh_page(session, "page_1")
        matched = "page_1" in session.revision_candidates
        session.document.page_fields["page_1"][FieldKey.TITLE] = ""
        await services.resolver.refresh_page(session, "page_1")
        cleared = "page_1" not in session.revision_candidates
        await session.close()
        return matched, cleared

    matched, cleared = asyncio.run(scenario())
    assert matched
    assert cleared


def test_title_edit_schedules_lookup_and_autofills(services, repo, drawing_fields):
    _seed(repo)

    async def scenario():
        session = services.registry.open("DOC-1")
        session.document.pages = {"page_1": Page(key="page_1", number=1, status=PageStatus.READY, rendered_image="/1.png")}
        fields = drawing_fields()
        title = fields.pop(FieldKey.TITLE)
        session.document.common_fields.update(
            {key: value for key, value in fields.items() if key not in (FieldKey.DRAWING_NUMBER, FieldKey.REVISION_NUMBER)}
        )
        session.document.page_fields["page_1"] = {
            FieldKey.DRAWING_NUMBER: fields[FieldKey.DRAWING_NUMBER],
            FieldKey.REVISION_NUMBER: fields[FieldKey.REVISION_NUMBER],
        }
        await services.propagator.change_field(session, FieldKey.TITLE, title, page_key="page_1")
        await session.settle()
        await session.close()
        return session

    session = asyncio.run(scenario())
    candidate = session.revision_candidates["page_1"]
    assert candidate.next_revision_token == "C"
    assert session.document.common_fields[FieldKey.BUILDING] == "Block 7|guid-b7"
    assert session.document.common_fields[FieldKey.DISCIPLINE] == "Architectural|guid-arch"
