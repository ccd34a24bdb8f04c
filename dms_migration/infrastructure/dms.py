"""Client for the PDF split and OCR job service."""
from __future__ import annotations

import logging
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx

from dms_migration.core.errors import ConflictError, DmsError, RepositoryError
from dms_migration.core.fields import FieldKey, is_blank
from dms_migration.core.schema import SavedMetadataPayload, SavedPagePayload, SplitPagePayload, SplitStatusPayload
from dms_migration.domain import Page, PageStatus, SavedMetadata, SplitSnapshot

from .http import send

logger = logging.getLogger(__name__)

# Display labels the split service stores progress under.
FIELD_LABELS: dict[FieldKey, str] = {
    FieldKey.TITLE: "Title",
    FieldKey.BUSINESS: "Business",
    FieldKey.SITE: "Resort",
    FieldKey.DEPARTMENT: "Department",
    FieldKey.BUILDING: "Building",
    FieldKey.DOCUMENT_TYPE: "Document Type",
    FieldKey.DISCIPLINE: "Discipline",
    FieldKey.GATE: "Gate",
    FieldKey.PARK_STAGE: "Park Stage",
    FieldKey.DRAWING_SET_NAME: "Drawing Set Name",
    FieldKey.DRAWING_AREA: "Drawing Area",
    FieldKey.DRAWING_NUMBER: "Drawing Number",
    FieldKey.VILLA: "Villa",
    FieldKey.CONFIDENTIALITY: "Confidentiality",
    FieldKey.REVISION_NUMBER: "Revision Number",
    FieldKey.SHORT_DESCRIPTION: "Short Description",
    FieldKey.DRAWING_DATE: "Drawing Date",
    FieldKey.DRAWING_RECEIVED_DATE: "Drawing Received Date",
}
_KEYS_BY_LABEL = {label.lower(): key for key, label in FIELD_LABELS.items()}

_API_PREFIX = "/v1/pdf-split-and-ocr"


def _page_status(value: str) -> PageStatus:
    try:
        return PageStatus(value.upper())
    except ValueError:
        logger.warning("unknown page status %r, treating as NEW", value)
        return PageStatus.NEW


def _to_wire(fields: dict[FieldKey, Any]) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for key, value in fields.items():
        if is_blank(value):
            continue
        payload[FIELD_LABELS[key]] = value.isoformat() if isinstance(value, date) else value
    return payload


def _from_wire(field_data: dict[str, Any] | None) -> dict[FieldKey, Any]:
    fields: dict[FieldKey, Any] = {}
    for label, value in (field_data or {}).items():
        key = _KEYS_BY_LABEL.get(label.replace("_", " ").lower())
        if key is None:
            continue
        fields[key] = value
    return fields


class DmsSplitClient:
    """HTTP client for the split service that turns a source PDF into pages."""

    def __init__(
        self,
        api_base: str,
        *,
        token: str | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not api_base.startswith(("http://", "https://")):
            raise ValueError("api_base must include scheme and host")
        self._base = api_base.rstrip("/") + _API_PREFIX
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers
        self._owns_client = http_client is None
        self._details: dict[tuple[str, int], dict[str, Any]] = {}

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _url(self, doc_name: str | None = None, *parts: str | int) -> str:
        segments = [self._base]
        if doc_name is not None:
            segments.append(quote(doc_name, safe=""))
        segments.extend(quote(str(part), safe="") for part in parts)
        return "/".join(segments)

    async def _call(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await send(self._client, method, url, headers=self._headers, **kwargs)

    async def _status_payload(self, doc_name: str) -> SplitStatusPayload:
        response = await self._call("GET", self._url(doc_name, "status"))
        return SplitStatusPayload.model_validate(response.json())

    async def _page_details(self, doc_name: str, page: SplitPagePayload) -> dict[str, Any] | None:
        if page.details:
            return page.details
        cache_key = (doc_name, page.page)
        if cache_key in self._details:
            return self._details[cache_key]
        try:
            response = await self._call("GET", self._url(doc_name, "pages", page.page))
        except DmsError as exc:
            logger.warning("details for %s page %d unavailable: %s", doc_name, page.page, exc)
            return None
        body = response.json()
        details = body if isinstance(body, dict) else {}
        self._details[cache_key] = details
        return details

    # ------------------------------------------------------------------
    # split job service
    # ------------------------------------------------------------------
    async def list_documents(self) -> list[str]:
        response = await self._call("GET", self._base)
        return [str(name) for name in response.json()]

    async def upload_source(self, file_name: str, content: bytes) -> str:
        files = {"file": (file_name, content, "application/pdf")}
        try:
            await self._call("POST", self._base, files=files)
        except RepositoryError as exc:
            if "already exists" in exc.message.lower():
                raise ConflictError(exc.message) from exc
            raise
        return file_name.split(".pdf")[0]

    async def start_split(self, doc_name: str) -> None:
        await self._call("POST", self._url(doc_name, "start"))

    async def get_split_status(self, doc_name: str) -> SplitSnapshot:
        payload = await self._status_payload(doc_name)
        pages: dict[str, Page] = {}
        for key, entry in payload.pages.items():
            status = _page_status(entry.status)
            if status in (PageStatus.READY, PageStatus.IGNORE):
                entry.details = await self._page_details(doc_name, entry)
            pages[key] = Page(
                key=key,
                number=entry.page,
                status=status,
                rendered_image=entry.img or entry.pdf,
                pdf_uri=entry.pdf,
                repository_id=entry.document_uri.rsplit("/", 1)[-1] if entry.document_uri else None,
                suggested_values=entry.suggestions(),
            )
        return SplitSnapshot(total_pages=payload.page_count, pages=pages)

    async def get_page_content(self, doc_name: str, page_key: str) -> bytes:
        number = page_key.rpartition("_")[2]
        response = await self._call("GET", self._url(doc_name, "pages", number, f"page_{number}.pdf"))
        return response.content

    async def update_page_status(
        self,
        doc_name: str,
        page_number: int,
        status: PageStatus,
        *,
        repository_id: str | None = None,
    ) -> None:
        params = {"document_uri": f"/view/{repository_id}"} if repository_id else None
        await self._call("PATCH", self._url(doc_name, "pages", page_number, status.value), params=params)

    async def save_metadata(self, doc_name: str, saved: SavedMetadata) -> None:
        payload = SavedMetadataPayload(
            field_data=_to_wire(saved.common),
            pages=[SavedPagePayload(page=number, field_data=_to_wire(fields)) for number, fields in sorted(saved.pages.items())],
        )
        await self._call("PATCH", self._url(doc_name, "pages"), json=payload.model_dump())

    async def get_saved_metadata(self, doc_name: str) -> SavedMetadata | None:
        payload = await self._status_payload(doc_name)
        pages = {entry.page: _from_wire(entry.field_data) for entry in payload.pages.values() if entry.field_data}
        if not payload.field_data and not pages:
            return None
        return SavedMetadata(common=_from_wire(payload.field_data), pages=pages)

    async def delete_document(self, doc_name: str) -> None:
        await self._call("DELETE", self._url(doc_name))
        self._details = {key: value for key, value in self._details.items() if key[0] != doc_name}

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["DmsSplitClient", "FIELD_LABELS"]
