from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[1]))

import httpx
import pytest

from dms_migration.core.errors import NotFoundError, RepositoryError
from dms_migration.core.fields import FieldKey
from dms_migration.domain import CopyJob, ModerationStatus
from dms_migration.infrastructure import SharePointClient

TENANT = "https://contoso.sharepoint.com"
HUB = f"{TENANT}/sites/DMS"
SITE_URL = f"{TENANT}/sites/PalmResort"


def _client(handler, **kwargs) -> SharePointClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SharePointClient(TENANT, hub_site_url=HUB, access_token="TOKEN", http_client=http_client, **kwargs)


def _digest_or(handler):
    def wrapped(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/_api/contextinfo"):
            return httpx.Response(200, json={"FormDigestValue": "DIGEST"})
        return handler(request)

    return wrapped


def test_search_builds_exact_match_query_and_reads_rows():
    captured: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/sites/DMS/_api/search/query"
        assert request.headers["Authorization"] == "Bearer TOKEN"
        captured.update(dict(request.url.params))
        rows = [
            {
                "Cells": [
                    {"Key": "UniqueId", "Value": "{4B3C-11}"},
                    {"Key": "SPSiteUrl", "Value": SITE_URL},
                    {"Key": "Title", "Value": "RoofPlan"},
                    {"Key": "RevisionNumber", "Value": "B"},
                    {"Key": "Path", "Value": "ignored"},
                ]
            },
            {"Cells": [{"Key": "Title", "Value": "no id"}]},
        ]
        return httpx.Response(200, json={"PrimaryQueryResult": {"RelevantResults": {"Table": {"Rows": rows}}}})

    client = _client(handler, related_hub_site_id="hub-1", select_properties=["Title", "RevisionNumber"])
    hits = asyncio.run(client.search_items({FieldKey.TITLE: "RoofPlan", FieldKey.DRAWING_AREA: "A1"}, 50))

    assert captured["querytext"] == (
        '\'Title="RoofPlan" DrawingArea="A1" contentclass:STS_ListItem_DocumentLibrary '
        "(RelatedHubSites:hub-1) (-SiteId:hub-1)'"
    )
    assert captured["rowlimit"] == "50"
    assert captured["selectproperties"] == "'Title,RevisionNumber'"
    assert len(hits) == 1
    assert hits[0].item_id == "4B3C-11"
    assert hits[0].site_url == SITE_URL
    assert hits[0].fields == {FieldKey.TITLE: "RoofPlan", FieldKey.REVISION_NUMBER: "B"}


def test_versions_are_mapped_to_canonical_fields():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/GetFileById('abc')/ListItemAllFields/Versions")
        return httpx.Response(
            200,
            json={
                "value": [
                    {
                        "VersionLabel": "2.0",
                        "Revision_x0020_Number": "B",
                        "Drawing_x0020_Number": "D-100",
                        "FileLeafRef": "RoofPlan.pdf",
                        "OData__x005f_ModerationStatus": 0,
                        "Discipline": {"Label": "Architectural", "TermGuid": "guid-arch"},
                        "Gate": None,
                    }
                ]
            },
        )

    versions = asyncio.run(_client(handler).list_item_versions(SITE_URL, "abc"))

    assert len(versions) == 1
    version = versions[0]
    assert version.version_label == "2.0"
    assert version.revision_marker == "B"
    assert version.drawing_number == "D-100"
    assert version.moderation_status == 0
    assert version.fields[FieldKey.DISCIPLINE] == "Architectural|guid-arch"
    assert FieldKey.GATE not in version.fields


def test_update_fields_formats_dates_and_sends_digest():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/ListItemAllFields"):
            return httpx.Response(200, json={"Id": 7})
        assert request.url.path.endswith("/items(7)/validateUpdateListItem")
        captured["digest"] = request.headers["X-RequestDigest"]
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"value": [{"FieldName": "Title", "HasException": False}]})

    fields = {
        FieldKey.TITLE: "RoofPlan",
        FieldKey.DRAWING_DATE: "2024-01-10",
        FieldKey.DRAWING_AREA: "A1|guid-a1",
        FieldKey.SHORT_DESCRIPTION: "",
    }
    asyncio.run(_client(_digest_or(handler)).update_fields(SITE_URL, "abc", fields))

    assert captured["digest"] == "DIGEST"
    assert captured["body"]["formValues"] == [
        {"FieldName": "Title", "FieldValue": "RoofPlan"},
        {"FieldName": "Drawing_x0020_Date", "FieldValue": "01/10/2024"},
        {"FieldName": "Drawing_x0020_Area", "FieldValue": "A1|guid-a1"},
        {"FieldName": "File_x0020_Type", "FieldValue": "pdf"},
    ]


def test_field_level_failure_is_reported():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/ListItemAllFields"):
            return httpx.Response(200, json={"Id": 7})
        return httpx.Response(
            200,
            json={"value": [{"FieldName": "Drawing_x0020_Area", "HasException": True, "ErrorMessage": "Invalid term"}]},
        )

    with pytest.raises(RepositoryError, match="Drawing_x0020_Area: Invalid term"):
        asyncio.run(_client(_digest_or(handler)).update_fields(SITE_URL, "abc", {FieldKey.DRAWING_AREA: "A9"}))


def test_repository_error_message_is_kept_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"odata.error": {"message": {"lang": "en-US", "value": "The file name is too long."}}})

    with pytest.raises(RepositoryError) as excinfo:
        asyncio.run(_client(_digest_or(handler)).upload_file(SITE_URL, ["Drawings"], "Roof.pdf", b"%PDF"))

    assert excinfo.value.message == "The file name is too long."
    assert excinfo.value.status_code == 400


def test_request_approval_publishes_with_comment():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200)

    asyncio.run(
        _client(_digest_or(handler)).set_moderation_status(
            SITE_URL, "abc", ModerationStatus.PENDING, "For Approval (automated)"
        )
    )

    assert seen == ["/sites/PalmResort/_api/web/GetFileById('abc')/Publish('For Approval (automated)')"]


def test_approval_uses_bulk_moderation_update():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/ListItemAllFields"):
            return httpx.Response(200, json={"Id": 12})
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"value": []})

    asyncio.run(_client(_digest_or(handler)).set_moderation_status(SITE_URL, "abc", ModerationStatus.APPROVED, "Approved"))

    assert captured["body"]["itemIds"] == [12]
    assert captured["body"]["formValues"] == [
        {"FieldName": "_ModerationStatus", "FieldValue": "0"},
        {"FieldName": "_ModerationComments", "FieldValue": "Approved"},
    ]


@pytest.mark.parametrize(
    ("user", "expected"),
    [
        ({"IsSiteAdmin": True, "Groups": []}, True),
        ({"IsSiteAdmin": False, "Groups": [{"Title": "Palm Resort Owners"}]}, True),
        ({"IsSiteAdmin": False, "Groups": [{"Title": "Palm Resort Members"}]}, False),
    ],
)
def test_auto_approval_rights(user, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/sites/PalmResort/_api/web/currentuser"
        assert request.url.params["$expand"] == "Groups"
        return httpx.Response(200, json=user)

    assert asyncio.run(_client(handler).can_auto_approve(SITE_URL, "Palm Resort")) is expected


def test_missing_folder_is_reported_as_absent():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "/sites/PalmResort/Shared Documents/Drawings/A1" in request.url.path
        return httpx.Response(404, json={"odata.error": {"message": {"value": "File Not Found."}}})

    assert asyncio.run(_client(handler).folder_exists(SITE_URL, ["Drawings", "A1"])) is False


def test_not_found_is_raised_for_unknown_items():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": {"message": {"value": "Item does not exist."}}})

    with pytest.raises(NotFoundError, match="Item does not exist."):
        asyncio.run(_client(handler).get_item(SITE_URL, "abc"))


def test_copy_job_progress_parses_log_entries():
    logs = [
        json.dumps({"Event": "JobStart", "Time": "06/01/2025 10:00:00.000"}),
        json.dumps({"Event": "JobWarning", "Message": "Version history was truncated"}),
        "not json",
        json.dumps({"Event": "JobEnd"}),
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/sites/PalmResort/_api/site/GetCopyJobProgress"
        body = json.loads(request.content.decode("utf-8"))
        assert body["copyJobInfo"]["JobId"] == "job-1"
        return httpx.Response(200, json={"JobState": 0, "Logs": logs})

    progress = asyncio.run(
        _client(_digest_or(handler)).get_copy_job_progress(SITE_URL, CopyJob(job_id="job-1", job_queue_uri="queue"))
    )

    assert progress.job_state == 0
    assert [entry.event for entry in progress.logs] == ["JobStart", "JobWarning", "JobEnd"]
    assert progress.logs[1].issue
    assert progress.logs[2].terminal


def test_copy_job_is_created_in_move_mode():
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content.decode("utf-8"))
        return httpx.Response(200, json={"value": [{"JobId": "job-9", "JobQueueUri": "queue", "EncryptionKey": "key"}]})

    job = asyncio.run(
        _client(_digest_or(handler)).start_copy_job(
            SITE_URL,
            "/sites/PalmResort/Shared Documents/Inbox/Roof.pdf",
            "/sites/PalmResort/Shared Documents/Drawings/A1",
        )
    )

    assert job.job_id == "job-9"
    body = captured["body"]
    assert body["exportObjectUris"] == [f"{TENANT}/sites/PalmResort/Shared Documents/Inbox/Roof.pdf"]
    assert body["destinationUri"] == f"{TENANT}/sites/PalmResort/Shared Documents/Drawings/A1"
    assert body["options"]["IsMoveMode"] is True


def test_plain_http_base_url_is_rejected():
    with pytest.raises(ValueError):
        SharePointClient("http://contoso.sharepoint.com", hub_site_url=HUB)
