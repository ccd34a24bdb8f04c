from __future__ import annotations

import asyncio

import pytest

from dms_migration.application import FolderAndMoveOrchestrator
from dms_migration.core.errors import RepositoryError
from dms_migration.domain import CopyJobLogEntry, CopyJobProgress

SITE_URL = "https://contoso.sharepoint.com/sites/PalmResort"
LIBRARY = "/sites/PalmResort/Shared Documents"


def test_ensure_folder_creates_missing_levels_once(services, repo):
    async def scenario():
        first = await services.folders.ensure_folder(SITE_URL, ["Drawings", "A1"], auto_approve=True)
        second = await services.folders.ensure_folder(SITE_URL, ["Drawings", "A1"], auto_approve=True)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == [f"{LIBRARY}/Drawings", f"{LIBRARY}/Drawings/A1"]
    assert second == []
    assert repo.calls.count("create_folder") == 2
    assert repo.approved_folders == {(SITE_URL, f"{LIBRARY}/Drawings"), (SITE_URL, f"{LIBRARY}/Drawings/A1")}


def test_ensure_folder_tolerates_concurrent_creation(services, repo):
    repo.folders.add((SITE_URL, f"{LIBRARY}/Drawings"))

    async def never_exists(site_url, segments):
        return False

    repo.folder_exists = never_exists

    created = asyncio.run(services.folders.ensure_folder(SITE_URL, ["Drawings", "B2"]))

    assert created == [f"{LIBRARY}/Drawings/B2"]
    assert repo.approved_folders == set()


def test_ensure_folder_propagates_other_failures(services, repo):
    repo.failures["create_folder"] = RepositoryError("Access denied.", status_code=403)

    with pytest.raises(RepositoryError, match="Access denied"):
        asyncio.run(services.folders.ensure_folder(SITE_URL, ["Drawings"]))


def test_move_within_the_same_folder_is_a_noop(services, repo):
    result = asyncio.run(
        services.folders.move(SITE_URL, f"{LIBRARY}/Drawings/A1/Roof.pdf", f"{LIBRARY}/Drawings/A1/")
    )

    assert result.status == "noop"
    assert result.warnings == []
    assert "start_copy_job" not in repo.calls


def test_move_reports_warnings_as_partial_success(services, repo):
    repo.copy_job_scripts.append(
        [
            CopyJobProgress(job_state=4, logs=[CopyJobLogEntry(event="JobStart")]),
            CopyJobProgress(
                job_state=0,
                logs=[
                    CopyJobLogEntry(event="JobWarning", message="Version history was truncated"),
                    CopyJobLogEntry(event="JobEnd"),
                ],
            ),
        ]
    )

    result = asyncio.run(services.folders.move(SITE_URL, f"{LIBRARY}/Inbox/Roof.pdf", f"{LIBRARY}/Drawings/A1"))

    assert result.status == "completed_with_issues"
    assert result.warnings == ["Version history was truncated"]
    assert result.partial
    assert result.job_id is not None


def test_move_that_never_finishes_is_stalled(repo):
    repo.copy_job_scripts.append([CopyJobProgress(job_state=4, logs=[])])
    folders = FolderAndMoveOrchestrator(repo, poll_interval=0.01, timeout=0.05)

    result = asyncio.run(folders.move(SITE_URL, f"{LIBRARY}/Inbox/Roof.pdf", f"{LIBRARY}/Drawings/A1"))

    assert result.status == "stalled"
    assert repo.calls.count("get_copy_job_progress") >= 2


def test_move_accepts_absolute_urls(services, repo):
    result = asyncio.run(
        services.folders.move(
            SITE_URL,
            f"https://contoso.sharepoint.com{LIBRARY}/Drawings/A1/Roof%20Plan.pdf",
            f"{LIBRARY}/Drawings/A1",
        )
    )

    assert result.status == "noop"
    assert result.source == f"{LIBRARY}/Drawings/A1/Roof Plan.pdf"


def test_move_onto_the_same_path_is_a_noop(services, repo):
    path = f"{LIBRARY}/Drawings/A1/file.pdf"

    result = asyncio.run(services.folders.move(SITE_URL, path, path))

    assert result.status == "noop"
    assert result.warnings == []
    assert repo.calls == []


def test_move_to_a_file_path_copies_into_its_folder(services, repo):
    captured: list[str] = []
    start_copy_job = repo.start_copy_job

    async def recording(site_url, source, destination):
        captured.append(destination)
        return await start_copy_job(site_url, source, destination)

    repo.start_copy_job = recording

    result = asyncio.run(
        services.folders.move(SITE_URL, f"{LIBRARY}/Inbox/file.pdf", f"{LIBRARY}/Drawings/A1/file.pdf")
    )

    assert result.status == "completed"
    assert captured == [f"{LIBRARY}/Drawings/A1"]
