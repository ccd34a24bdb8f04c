"""Folder creation and cross-folder moves."""
from __future__ import annotations

import asyncio
import logging
from typing import Sequence
from urllib.parse import unquote

from dms_migration.core.errors import RepositoryError
from dms_migration.domain import MoveResult
from dms_migration.infrastructure.repository import ContentRepository

logger = logging.getLogger(__name__)


def _normalise_path(path: str) -> str:
    cleaned = unquote(path).strip()
    if "://" in cleaned:
        cleaned = "/" + cleaned.split("://", 1)[1].partition("/")[2]
    return "/" + cleaned.strip("/")


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] or "/"


def _container(path: str, source_path: str) -> str:
    """Folder a destination resolves to; a path naming the file itself resolves to its parent."""

    leaf = source_path.rsplit("/", 1)[-1]
    if path == source_path or path.rsplit("/", 1)[-1] == leaf:
        return _parent(path)
    return path


class FolderAndMoveOrchestrator:
    def __init__(
        self,
        repository: ContentRepository,
        *,
        library: str = "Shared Documents",
        poll_interval: float = 1.0,
        timeout: float = 120.0,
    ) -> None:
        self._repository = repository
        self._library = library
        self._poll_interval = poll_interval
        self._timeout = timeout

    def folder_path(self, site_url: str, segments: Sequence[str]) -> str:
        """Server-relative path of a folder below the document library."""

        site_path = site_url.split("://", 1)[-1].partition("/")[2].strip("/")
        parts = [site_path, self._library, *segments]
        return "/" + "/".join(part.strip("/") for part in parts if part)

    async def ensure_folder(
        self,
        site_url: str,
        segments: Sequence[str],
        *,
        auto_approve: bool = False,
    ) -> list[str]:
        """Create every missing folder along ``segments`` and return the created paths."""

        created: list[str] = []
        for depth in range(1, len(segments) + 1):
            prefix = list(segments[:depth])
            if await self._repository.folder_exists(site_url, prefix):
                continue
            try:
                await self._repository.create_folder(site_url, prefix)
            except RepositoryError as exc:
                # another writer created it between the check and the create
                if "already exists" not in exc.message.lower():
                    raise
                continue
            created.append(self.folder_path(site_url, prefix))
            logger.info("created folder %s", created[-1])
            if auto_approve:
                await self._repository.approve_folder(site_url, prefix)
        return created

    async def move(self, site_url: str, source: str, destination: str) -> MoveResult:
        """Move a file into ``destination`` through a copy job.

        A move within the same folder is a no-op. Warning and error log
        entries are returned as warnings; when the job never reports an end
        within the timeout the result status is ``"stalled"``.
        """

        source_path = _normalise_path(source)
        destination_path = _normalise_path(destination)
        result = MoveResult(source=source_path, destination=destination_path)
        destination_folder = _container(destination_path, source_path)
        if _parent(source_path) == destination_folder:
            result.status = "noop"
            return result

        job = await self._repository.start_copy_job(site_url, source_path, destination_folder)
        result.job_id = job.job_id
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._timeout
        while True:
            progress = await self._repository.get_copy_job_progress(site_url, job)
            finished = False
            for entry in progress.logs:
                if entry.issue:
                    message = entry.message or entry.event
                    result.warnings.append(message)
                    logger.warning("copy job %s reported %s: %s", job.job_id, entry.event, message)
                if entry.terminal:
                    finished = True
            if finished:
                break
            if loop.time() >= deadline:
                result.status = "stalled"
                logger.error("copy job %s did not finish within %.0fs", job.job_id, self._timeout)
                return result
            await asyncio.sleep(self._poll_interval)

        result.status = "completed_with_issues" if result.warnings else "completed"
        return result
