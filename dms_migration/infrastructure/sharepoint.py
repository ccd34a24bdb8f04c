"""SharePoint REST adapter for the content repository."""
from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Sequence

import httpx

from dms_migration.core.dates import format_repository_date
from dms_migration.core.errors import NotFoundError, RepositoryError
from dms_migration.core.fields import DATE_FIELDS, FieldKey, is_blank, term_label
from dms_migration.core.revision import build_filter_expression
from dms_migration.core.schema import CopyJobLogPayload, CopyJobProgressPayload
from dms_migration.domain import (
    CopyJob,
    CopyJobLogEntry,
    CopyJobProgress,
    FileVersion,
    ModerationStatus,
    RepositoryItem,
    SearchHit,
    UploadedItem,
)

from .http import send

logger = logging.getLogger(__name__)

# Internal column names on the drawing content type.
FIELD_NAMES: dict[FieldKey, str] = {
    FieldKey.TITLE: "Title",
    FieldKey.BUSINESS: "Business",
    FieldKey.SITE: "Resort",
    FieldKey.DEPARTMENT: "Department",
    FieldKey.BUILDING: "Building",
    FieldKey.DOCUMENT_TYPE: "Document_x0020_Type",
    FieldKey.DISCIPLINE: "Discipline",
    FieldKey.GATE: "Gate",
    FieldKey.PARK_STAGE: "Park_x0020_Stage",
    FieldKey.DRAWING_SET_NAME: "Drawing_x0020_Set_x0020_Name",
    FieldKey.DRAWING_AREA: "Drawing_x0020_Area",
    FieldKey.DRAWING_NUMBER: "Drawing_x0020_Number",
    FieldKey.VILLA: "Villa",
    FieldKey.CONFIDENTIALITY: "Confidentiality",
    FieldKey.REVISION_NUMBER: "Revision_x0020_Number",
    FieldKey.SHORT_DESCRIPTION: "Short_x0020_Description",
    FieldKey.DRAWING_DATE: "Drawing_x0020_Date",
    FieldKey.DRAWING_RECEIVED_DATE: "Drawing_x0020_Received_x0020_Date",
}

# Managed search properties used for the exact-match revision query.
SEARCH_PROPERTIES: dict[FieldKey, str] = {
    FieldKey.TITLE: "Title",
    FieldKey.BUSINESS: "Business",
    FieldKey.SITE: "Resort",
    FieldKey.DEPARTMENT: "Department",
    FieldKey.DRAWING_NUMBER: "DrawingNumber",
    FieldKey.DRAWING_AREA: "DrawingArea",
    FieldKey.REVISION_NUMBER: "RevisionNumber",
}

LIST_PATH = "lists/GetByTitle('Documents')"
ACCEPT = "application/json;odata=nometadata"


def _literal(value: str) -> str:
    return value.replace("'", "''")


def _term_value(value: Any) -> Any:
    """Render taxonomy values as ``"label|guid"``; other values pass through."""

    if isinstance(value, dict):
        label = value.get("Label")
        guid = value.get("TermGuid")
        if label and guid:
            return f"{label}|{guid}"
        return label
    return value


def _cells(row: Mapping[str, Any]) -> dict[str, Any]:
    cells = row.get("Cells") or []
    if isinstance(cells, dict):
        cells = cells.get("results") or []
    return {cell.get("Key"): cell.get("Value") for cell in cells if isinstance(cell, dict)}


class SharePointClient:
    """Search, version, upload, moderation, folder and copy-job calls against SharePoint Online."""

    def __init__(
        self,
        base_url: str,
        *,
        hub_site_url: str,
        access_token: str | None = None,
        related_hub_site_id: str | None = None,
        library: str = "Shared Documents",
        select_properties: Sequence[str] = (),
        field_names: Mapping[FieldKey, str] | None = None,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not base_url.startswith("https://"):
            raise ValueError("base_url must be an https URL")
        self._base_url = base_url.rstrip("/")
        self._hub_site_url = hub_site_url.rstrip("/")
        self._related_hub_site_id = related_hub_site_id
        self._library = library
        self._select_properties = list(select_properties)
        self._field_names = dict(field_names or FIELD_NAMES)
        self._keys_by_name = {name: key for key, name in self._field_names.items()}
        headers = {"Accept": ACCEPT, "Content-Type": ACCEPT}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._headers = headers
        self._client = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    async def _call(
        self,
        method: str,
        url: str,
        *,
        digest: str | None = None,
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        merged = dict(self._headers)
        if digest:
            merged["X-RequestDigest"] = digest
        if headers:
            merged.update(headers)
        return await send(self._client, method, url, headers=merged, **kwargs)

    async def _json(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._call(method, url, **kwargs)
        if not response.content:
            return {}
        return response.json()

    async def _form_digest(self, site_url: str) -> str:
        data = await self._json("POST", f"{site_url}/_api/contextinfo")
        return str(data.get("FormDigestValue", ""))

    def _server_relative(self, site_url: str, segments: Sequence[str]) -> str:
        site_path = site_url.split("://", 1)[-1].partition("/")[2].strip("/")
        parts = [site_path, self._library, *segments]
        return "/" + "/".join(part.strip("/") for part in parts if part)

    def _absolute(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _list_item_id(self, site_url: str, item_id: str) -> int:
        data = await self._json("GET", f"{site_url}/_api/web/GetFileById('{item_id}')/ListItemAllFields?$select=Id")
        return int(data["Id"])

    async def _bulk_update(self, site_url: str, list_item_ids: Sequence[int], form_values: list[dict[str, str]]) -> None:
        digest = await self._form_digest(site_url)
        payload = {"itemIds": list(list_item_ids), "formValues": form_values, "folderPath": ""}
        await self._call(
            "POST",
            f"{site_url}/_api/web/{LIST_PATH}/BulkValidateUpdateListItems()",
            digest=digest,
            json=payload,
        )

    def _fields_from(self, data: Mapping[str, Any]) -> dict[FieldKey, Any]:
        fields: dict[FieldKey, Any] = {}
        for name, value in data.items():
            key = self._keys_by_name.get(name)
            if key is not None and value not in (None, ""):
                fields[key] = _term_value(value)
        return fields

    # ------------------------------------------------------------------
    # search and versions
    # ------------------------------------------------------------------
    async def search_items(self, criteria: Mapping[FieldKey, str], row_limit: int) -> list[SearchHit]:
        clauses = {SEARCH_PROPERTIES[key]: value for key, value in criteria.items() if key in SEARCH_PROPERTIES}
        query = build_filter_expression(clauses, hub_site_id=self._related_hub_site_id)
        params = {"querytext": f"'{_literal(query)}'", "rowlimit": str(row_limit)}
        if self._select_properties:
            params["selectproperties"] = f"'{','.join(self._select_properties)}'"
        data = await self._json("GET", f"{self._hub_site_url}/_api/search/query", params=params)

        rows = (
            data.get("PrimaryQueryResult", {}).get("RelevantResults", {}).get("Table", {}).get("Rows", [])
            if isinstance(data, dict)
            else []
        )
        if isinstance(rows, dict):
            rows = rows.get("results") or []
        by_property = {name: key for key, name in SEARCH_PROPERTIES.items()}
        hits: list[SearchHit] = []
        for row in rows:
            cells = _cells(row)
            unique_id = str(cells.get("UniqueId") or "").strip("{}")
            if not unique_id:
                continue
            fields = {by_property[name]: value for name, value in cells.items() if name in by_property and value}
            hits.append(SearchHit(item_id=unique_id, site_url=cells.get("SPSiteUrl"), fields=fields))
        return hits

    async def list_item_versions(self, site_url: str, item_id: str) -> list[FileVersion]:
        data = await self._json("GET", f"{site_url}/_api/web/GetFileById('{item_id}')/ListItemAllFields/Versions")
        versions: list[FileVersion] = []
        for entry in data.get("value", []):
            fields = self._fields_from(entry)
            status = entry.get("OData__x005f_ModerationStatus", entry.get("_ModerationStatus"))
            versions.append(
                FileVersion(
                    version_label=str(entry.get("VersionLabel", "")),
                    revision_marker=term_label(fields.get(FieldKey.REVISION_NUMBER)) or None,
                    file_name=entry.get("FileLeafRef"),
                    drawing_number=term_label(fields.get(FieldKey.DRAWING_NUMBER)) or None,
                    moderation_status=int(status) if status is not None else None,
                    fields=fields,
                )
            )
        return versions

    async def get_item(self, site_url: str, item_id: str) -> RepositoryItem:
        data = await self._json("GET", f"{site_url}/_api/web/GetFileById('{item_id}')/ListItemAllFields")
        fields = self._fields_from(data)
        status = data.get("OData__ModerationStatus", ModerationStatus.DRAFT)
        return RepositoryItem(
            item_id=item_id,
            file_ref=str(data.get("FileRef", "")),
            folder=str(data.get("FileDirRef", "")),
            moderation_status=ModerationStatus(int(status)),
            moderation_comment=data.get("OData__ModerationComments"),
            document_type=term_label(fields.get(FieldKey.DOCUMENT_TYPE)) or None,
            drawing_area=term_label(fields.get(FieldKey.DRAWING_AREA)) or None,
            title=data.get("Title"),
        )

    # ------------------------------------------------------------------
    # commits
    # ------------------------------------------------------------------
    async def upload_file(
        self,
        site_url: str,
        folder: Sequence[str],
        file_name: str,
        content: bytes,
        *,
        target_item_id: str | None = None,
    ) -> UploadedItem:
        digest = await self._form_digest(site_url)
        if target_item_id is not None:
            await self._call(
                "POST",
                f"{site_url}/_api/web/GetFileById('{target_item_id}')/$value",
                digest=digest,
                headers={"X-HTTP-Method": "PUT", "Content-Type": "application/octet-stream"},
                content=content,
            )
            data = await self._json("GET", f"{site_url}/_api/web/GetFileById('{target_item_id}')?$select=ServerRelativeUrl")
            return UploadedItem(item_id=target_item_id, file_ref=str(data.get("ServerRelativeUrl", "")))

        folder_path = self._server_relative(site_url, folder)
        data = await self._json(
            "POST",
            f"{site_url}/_api/web/GetFolderByServerRelativeUrl('{_literal(folder_path)}')"
            f"/Files/add(url='{_literal(file_name)}',overwrite=false)",
            digest=digest,
            headers={"Content-Type": "application/octet-stream"},
            content=content,
        )
        return UploadedItem(item_id=str(data["UniqueId"]), file_ref=str(data.get("ServerRelativeUrl", "")))

    async def update_fields(self, site_url: str, item_id: str, fields: Mapping[FieldKey, Any]) -> None:
        list_item_id = await self._list_item_id(site_url, item_id)
        form_values: list[dict[str, str]] = []
        for key, value in fields.items():
            name = self._field_names.get(key)
            if name is None or is_blank(value):
                continue
            text = format_repository_date(value) if key in DATE_FIELDS else str(value)
            form_values.append({"FieldName": name, "FieldValue": text})
        form_values.append({"FieldName": "File_x0020_Type", "FieldValue": "pdf"})

        digest = await self._form_digest(site_url)
        data = await self._json(
            "POST",
            f"{site_url}/_api/web/{LIST_PATH}/items({list_item_id})/validateUpdateListItem",
            digest=digest,
            json={"formValues": form_values, "bNewDocumentUpdate": False},
        )
        for result in data.get("value", []):
            if result.get("HasException"):
                raise RepositoryError(f"{result.get('FieldName')}: {result.get('ErrorMessage')}")

    async def set_moderation_status(
        self,
        site_url: str,
        item_id: str,
        status: ModerationStatus,
        comment: str,
    ) -> None:
        if status is ModerationStatus.PENDING:
            digest = await self._form_digest(site_url)
            await self._call(
                "POST",
                f"{site_url}/_api/web/GetFileById('{item_id}')/Publish('{_literal(comment)}')",
                digest=digest,
                headers={"IF-MATCH": "*"},
            )
            return
        list_item_id = await self._list_item_id(site_url, item_id)
        await self._bulk_update(
            site_url,
            [list_item_id],
            [
                {"FieldName": "_ModerationStatus", "FieldValue": str(int(status))},
                {"FieldName": "_ModerationComments", "FieldValue": comment},
            ],
        )

    async def can_auto_approve(self, site_url: str, site_name: str) -> bool:
        data = await self._json("GET", f"{site_url}/_api/web/currentuser?$expand=Groups")
        if data.get("IsSiteAdmin"):
            return True
        owners = f"{site_name} owners".lower()
        groups = data.get("Groups") or []
        if isinstance(groups, dict):
            groups = groups.get("results") or []
        return any(str(group.get("Title", "")).lower() == owners for group in groups)

    # ------------------------------------------------------------------
    # folders
    # ------------------------------------------------------------------
    async def folder_exists(self, site_url: str, segments: Sequence[str]) -> bool:
        path = self._server_relative(site_url, segments)
        try:
            data = await self._json(
                "GET", f"{site_url}/_api/web/GetFolderByServerRelativeUrl('{_literal(path)}')?$select=Exists"
            )
        except NotFoundError:
            return False
        return bool(data.get("Exists"))

    async def create_folder(self, site_url: str, segments: Sequence[str]) -> None:
        path = self._server_relative(site_url, segments)
        digest = await self._form_digest(site_url)
        await self._call("POST", f"{site_url}/_api/web/folders/add('{_literal(path)}')", digest=digest)

    async def approve_folder(self, site_url: str, segments: Sequence[str]) -> None:
        path = self._server_relative(site_url, segments)
        data = await self._json(
            "GET",
            f"{site_url}/_api/web/GetFolderByServerRelativeUrl('{_literal(path)}')/ListItemAllFields?$select=Id",
        )
        await self._bulk_update(
            site_url,
            [int(data["Id"])],
            [
                {"FieldName": "_ModerationStatus", "FieldValue": str(int(ModerationStatus.APPROVED))},
                {"FieldName": "_ModerationComments", "FieldValue": "Approved (Auto)"},
            ],
        )

    # ------------------------------------------------------------------
    # copy jobs
    # ------------------------------------------------------------------
    async def start_copy_job(self, site_url: str, source_url: str, destination_url: str) -> CopyJob:
        digest = await self._form_digest(site_url)
        payload = {
            "exportObjectUris": [self._absolute(source_url)],
            "destinationUri": self._absolute(destination_url),
            "options": {
                "IgnoreVersionHistory": False,
                "IsMoveMode": True,
                "AllowSchemaMismatch": True,
                "NameConflictBehavior": 0,
            },
        }
        data = await self._json("POST", f"{site_url}/_api/site/CreateCopyJobs", digest=digest, json=payload)
        jobs = data.get("value") or []
        if not jobs:
            raise RepositoryError("copy job was not created")
        job = jobs[0]
        return CopyJob(
            job_id=str(job.get("JobId")),
            job_queue_uri=job.get("JobQueueUri"),
            encryption_key=job.get("EncryptionKey"),
        )

    async def get_copy_job_progress(self, site_url: str, job: CopyJob) -> CopyJobProgress:
        digest = await self._form_digest(site_url)
        payload = {
            "copyJobInfo": {
                "JobId": job.job_id,
                "JobQueueUri": job.job_queue_uri,
                "EncryptionKey": job.encryption_key,
            }
        }
        data = await self._json("POST", f"{site_url}/_api/site/GetCopyJobProgress", digest=digest, json=payload)
        progress = CopyJobProgressPayload.model_validate(data)
        logs: list[CopyJobLogEntry] = []
        for raw in progress.logs:
            try:
                entry = CopyJobLogPayload.model_validate(json.loads(raw))
            except ValueError:
                logger.warning("unreadable copy job log entry %r", raw)
                continue
            logs.append(CopyJobLogEntry(event=entry.event, time=entry.time, message=entry.message))
        return CopyJobProgress(job_state=progress.job_state, logs=logs)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["FIELD_NAMES", "SEARCH_PROPERTIES", "SharePointClient"]
