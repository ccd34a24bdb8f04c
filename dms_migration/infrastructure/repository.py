"""Collaborator contracts and an in-memory implementation of both."""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Protocol, Sequence

from dms_migration.core.errors import ConflictError, NotFoundError, RepositoryError
from dms_migration.core.fields import FieldKey, is_blank, term_label
from dms_migration.domain import (
    CopyJob,
    CopyJobLogEntry,
    CopyJobProgress,
    FileVersion,
    ModerationStatus,
    Page,
    PageStatus,
    RepositoryItem,
    SavedMetadata,
    SearchHit,
    SplitSnapshot,
    UploadedItem,
)


class SplitJobService(Protocol):
    """Contract for the service that splits source PDFs and runs OCR per page."""

    async def list_documents(self) -> list[str]: ...

    async def upload_source(self, file_name: str, content: bytes) -> str: ...

    async def start_split(self, doc_name: str) -> None: ...

    async def get_split_status(self, doc_name: str) -> SplitSnapshot: ...

    async def get_page_content(self, doc_name: str, page_key: str) -> bytes: ...

    async def update_page_status(
        self,
        doc_name: str,
        page_number: int,
        status: PageStatus,
        *,
        repository_id: str | None = None,
    ) -> None: ...

    async def save_metadata(self, doc_name: str, saved: SavedMetadata) -> None: ...

    async def get_saved_metadata(self, doc_name: str) -> SavedMetadata | None: ...

    async def delete_document(self, doc_name: str) -> None: ...


class ContentRepository(Protocol):
    """Contract for the document repository that receives committed pages."""

    async def search_items(self, criteria: Mapping[FieldKey, str], row_limit: int) -> list[SearchHit]: ...

    async def list_item_versions(self, site_url: str, item_id: str) -> list[FileVersion]: ...

    async def get_item(self, site_url: str, item_id: str) -> RepositoryItem: ...

    async def upload_file(
        self,
        site_url: str,
        folder: Sequence[str],
        file_name: str,
        content: bytes,
        *,
        target_item_id: str | None = None,
    ) -> UploadedItem: ...

    async def update_fields(self, site_url: str, item_id: str, fields: Mapping[FieldKey, Any]) -> None: ...

    async def set_moderation_status(
        self,
        site_url: str,
        item_id: str,
        status: ModerationStatus,
        comment: str,
    ) -> None: ...

    async def can_auto_approve(self, site_url: str, site_name: str) -> bool: ...

    async def folder_exists(self, site_url: str, segments: Sequence[str]) -> bool: ...

    async def create_folder(self, site_url: str, segments: Sequence[str]) -> None: ...

    async def approve_folder(self, site_url: str, segments: Sequence[str]) -> None: ...

    async def start_copy_job(self, site_url: str, source_url: str, destination_url: str) -> CopyJob: ...

    async def get_copy_job_progress(self, site_url: str, job: CopyJob) -> CopyJobProgress: ...


@dataclass(slots=True)
class _StoredDocument:
    name: str
    content: bytes
    split_requested: bool = False
    total_pages: int = 0
    pages: dict[str, Page] = field(default_factory=dict)
    page_content: dict[str, bytes] = field(default_factory=dict)
    saved: SavedMetadata | None = None


@dataclass(slots=True)
class _StoredItem:
    item_id: str
    site_url: str
    folder: str
    file_name: str
    content: bytes
    moderation_status: ModerationStatus = ModerationStatus.DRAFT
    moderation_comment: str | None = None
    fields: dict[FieldKey, Any] = field(default_factory=dict)
    versions: list[FileVersion] = field(default_factory=list)

    @property
    def file_ref(self) -> str:
        return f"{self.folder}/{self.file_name}"


class InMemoryRepository:
    """In-memory split service and content repository for development and tests.

    ``calls`` records every operation name in order so tests can assert that
    nothing reached the repository.
    """

    def __init__(self, *, library: str = "Shared Documents") -> None:
        self._library = library
        self._ids = itertools.count(1)
        self.documents: dict[str, _StoredDocument] = {}
        self.items: dict[str, _StoredItem] = {}
        self.folders: set[tuple[str, str]] = set()
        self.approved_folders: set[tuple[str, str]] = set()
        self.auto_approve_sites: set[str] = set()
        self.copy_job_scripts: list[list[CopyJobProgress]] = []
        self._copy_jobs: dict[str, tuple[str, str, str, list[CopyJobProgress]]] = {}
        self.failures: dict[str, Exception] = {}
        self.calls: list[str] = []

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _record(self, name: str) -> None:
        self.calls.append(name)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def _document(self, doc_name: str) -> _StoredDocument:
        document = self.documents.get(doc_name)
        if document is None:
            raise NotFoundError(f"document '{doc_name}' not found")
        return document

    def _item(self, item_id: str) -> _StoredItem:
        item = self.items.get(item_id)
        if item is None:
            raise NotFoundError(f"item '{item_id}' not found")
        return item

    def _folder_path(self, site_url: str, segments: Sequence[str]) -> str:
        site_path = site_url.split("://", 1)[-1].partition("/")[2].strip("/")
        parts = [site_path, self._library, *segments]
        return "/" + "/".join(part.strip("/") for part in parts if part)

    # ------------------------------------------------------------------
    # seeding helpers
    # ------------------------------------------------------------------
    def add_document(
        self,
        doc_name: str,
        *,
        pages: int = 0,
        status: PageStatus = PageStatus.READY,
        content: bytes = b"%PDF-1.7",
    ) -> _StoredDocument:
        document = _StoredDocument(name=doc_name, content=content)
        self.documents[doc_name] = document
        if pages:
            self.set_split_result(doc_name, pages=pages, status=status)
        return document

    def set_split_result(self, doc_name: str, *, pages: int, status: PageStatus = PageStatus.READY) -> None:
        document = self._document(doc_name)
        document.total_pages = pages
        document.pages = {}
        for number in range(1, pages + 1):
            key = f"page_{number}"
            image = f"/split/{doc_name}/{key}.png" if status is PageStatus.READY else None
            document.pages[key] = Page(key=key, number=number, status=status, rendered_image=image)
            document.page_content[key] = f"%PDF page {number}".encode("utf-8")

    def set_page_status(self, doc_name: str, page_key: str, status: PageStatus) -> None:
        page = self._document(doc_name).pages[page_key]
        page.status = status
        if status is PageStatus.READY and not page.rendered_image:
            page.rendered_image = f"/split/{doc_name}/{page_key}.png"

    def add_item(
        self,
        site_url: str,
        file_name: str,
        *,
        folder: Sequence[str] = (),
        fields: Mapping[FieldKey, Any] | None = None,
        versions: Sequence[FileVersion] = (),
        moderation_status: ModerationStatus = ModerationStatus.APPROVED,
    ) -> _StoredItem:
        item_id = f"item-{next(self._ids)}"
        item = _StoredItem(
            item_id=item_id,
            site_url=site_url,
            folder=self._folder_path(site_url, folder),
            file_name=file_name,
            content=b"",
            moderation_status=moderation_status,
            fields=dict(fields or {}),
            versions=list(versions),
        )
        self.items[item_id] = item
        return item

    # ------------------------------------------------------------------
    # split job service
    # ------------------------------------------------------------------
    async def list_documents(self) -> list[str]:
        self._record("list_documents")
        return sorted(self.documents)

    async def upload_source(self, file_name: str, content: bytes) -> str:
        self._record("upload_source")
        doc_name = file_name.rsplit(".", 1)[0]
        if doc_name in self.documents:
            raise ConflictError(f"Doc already exists: {doc_name}")
        self.documents[doc_name] = _StoredDocument(name=doc_name, content=content)
        return doc_name

    async def start_split(self, doc_name: str) -> None:
        self._record("start_split")
        self._document(doc_name).split_requested = True

    async def get_split_status(self, doc_name: str) -> SplitSnapshot:
        self._record("get_split_status")
        document = self._document(doc_name)
        pages = {key: replace(page, suggested_values=dict(page.suggested_values)) for key, page in document.pages.items()}
        return SplitSnapshot(total_pages=document.total_pages, pages=pages)

    async def get_page_content(self, doc_name: str, page_key: str) -> bytes:
        self._record("get_page_content")
        document = self._document(doc_name)
        try:
            return document.page_content[page_key]
        except KeyError as exc:
            raise NotFoundError(f"page '{page_key}' of '{doc_name}' not found") from exc

    async def update_page_status(
        self,
        doc_name: str,
        page_number: int,
        status: PageStatus,
        *,
        repository_id: str | None = None,
    ) -> None:
        self._record("update_page_status")
        document = self._document(doc_name)
        for page in document.pages.values():
            if page.number == page_number:
                page.status = status
                if repository_id:
                    page.repository_id = repository_id
                return
        raise NotFoundError(f"page {page_number} of '{doc_name}' not found")

    async def save_metadata(self, doc_name: str, saved: SavedMetadata) -> None:
        self._record("save_metadata")
        self._document(doc_name).saved = saved

    async def get_saved_metadata(self, doc_name: str) -> SavedMetadata | None:
        self._record("get_saved_metadata")
        return self._document(doc_name).saved

    async def delete_document(self, doc_name: str) -> None:
        self._record("delete_document")
        self._document(doc_name)
        del self.documents[doc_name]

    # ------------------------------------------------------------------
    # content repository
    # ------------------------------------------------------------------
    async def search_items(self, criteria: Mapping[FieldKey, str], row_limit: int) -> list[SearchHit]:
        self._record("search_items")
        hits: list[SearchHit] = []
        for item in self.items.values():
            if all(term_label(item.fields.get(key)) == value for key, value in criteria.items()):
                hits.append(SearchHit(item_id=item.item_id, site_url=item.site_url, fields=dict(item.fields)))
            if len(hits) >= row_limit:
                break
        return hits

    async def list_item_versions(self, site_url: str, item_id: str) -> list[FileVersion]:
        self._record("list_item_versions")
        return list(self._item(item_id).versions)

    async def get_item(self, site_url: str, item_id: str) -> RepositoryItem:
        self._record("get_item")
        item = self._item(item_id)
        return RepositoryItem(
            item_id=item.item_id,
            file_ref=item.file_ref,
            folder=item.folder,
            moderation_status=item.moderation_status,
            moderation_comment=item.moderation_comment,
            document_type=term_label(item.fields.get(FieldKey.DOCUMENT_TYPE)) or None,
            drawing_area=term_label(item.fields.get(FieldKey.DRAWING_AREA)) or None,
            title=item.fields.get(FieldKey.TITLE),
        )

    async def upload_file(
        self,
        site_url: str,
        folder: Sequence[str],
        file_name: str,
        content: bytes,
        *,
        target_item_id: str | None = None,
    ) -> UploadedItem:
        self._record("upload_file")
        if target_item_id is not None:
            item = self._item(target_item_id)
            item.content = content
            item.file_name = file_name
            item.moderation_status = ModerationStatus.DRAFT
            label = f"{len(item.versions) + 1}.0"
            item.versions.insert(0, FileVersion(version_label=label, file_name=file_name, fields=dict(item.fields)))
            return UploadedItem(item_id=item.item_id, file_ref=item.file_ref)

        path = self._folder_path(site_url, folder)
        if folder and (site_url, path) not in self.folders:
            raise RepositoryError(f"folder '{path}' does not exist", status_code=404)
        for existing in self.items.values():
            if existing.folder == path and existing.file_name == file_name:
                raise RepositoryError(f"A file with the name {path}/{file_name} already exists.", status_code=400)
        item = self.add_item(site_url, file_name, folder=folder, moderation_status=ModerationStatus.DRAFT)
        item.content = content
        item.versions.insert(0, FileVersion(version_label="1.0", file_name=file_name))
        return UploadedItem(item_id=item.item_id, file_ref=item.file_ref)

    async def update_fields(self, site_url: str, item_id: str, fields: Mapping[FieldKey, Any]) -> None:
        self._record("update_fields")
        item = self._item(item_id)
        item.fields.update({key: value for key, value in fields.items() if not is_blank(value)})
        if item.versions:
            latest = item.versions[0]
            latest.fields = dict(item.fields)
            latest.revision_marker = item.fields.get(FieldKey.REVISION_NUMBER)
            latest.drawing_number = item.fields.get(FieldKey.DRAWING_NUMBER)

    async def set_moderation_status(
        self,
        site_url: str,
        item_id: str,
        status: ModerationStatus,
        comment: str,
    ) -> None:
        self._record("set_moderation_status")
        item = self._item(item_id)
        item.moderation_status = status
        item.moderation_comment = comment
        if item.versions:
            item.versions[0].moderation_status = int(status)

    async def can_auto_approve(self, site_url: str, site_name: str) -> bool:
        self._record("can_auto_approve")
        return site_url in self.auto_approve_sites

    async def folder_exists(self, site_url: str, segments: Sequence[str]) -> bool:
        self._record("folder_exists")
        return (site_url, self._folder_path(site_url, segments)) in self.folders

    async def create_folder(self, site_url: str, segments: Sequence[str]) -> None:
        self._record("create_folder")
        key = (site_url, self._folder_path(site_url, segments))
        if key in self.folders:
            raise RepositoryError(f"A file or folder with the name {key[1]} already exists.", status_code=400)
        self.folders.add(key)

    async def approve_folder(self, site_url: str, segments: Sequence[str]) -> None:
        self._record("approve_folder")
        self.approved_folders.add((site_url, self._folder_path(site_url, segments)))

    async def start_copy_job(self, site_url: str, source_url: str, destination_url: str) -> CopyJob:
        self._record("start_copy_job")
        job_id = f"job-{next(self._ids)}"
        if self.copy_job_scripts:
            script = list(self.copy_job_scripts.pop(0))
        else:
            script = [
                CopyJobProgress(
                    job_state=0,
                    logs=[CopyJobLogEntry(event="JobStart"), CopyJobLogEntry(event="JobEnd")],
                )
            ]
        self._copy_jobs[job_id] = (site_url, source_url, destination_url, script)
        return CopyJob(job_id=job_id, job_queue_uri=f"memory://{job_id}")

    async def get_copy_job_progress(self, site_url: str, job: CopyJob) -> CopyJobProgress:
        self._record("get_copy_job_progress")
        _, source_url, destination_url, script = self._copy_jobs[job.job_id]
        progress = script.pop(0) if len(script) > 1 else script[0]
        if any(entry.event == "JobEnd" for entry in progress.logs):
            self._complete_move(source_url, destination_url)
        return progress

    def _complete_move(self, source_url: str, destination_url: str) -> None:
        for item in self.items.values():
            if item.file_ref == source_url.rstrip("/"):
                item.folder = destination_url.rstrip("/")
                return

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self.__init__(library=self._library)
