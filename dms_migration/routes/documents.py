from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, File, HTTPException, UploadFile

from dms_migration.application import DocumentSession, get_services
from dms_migration.core.fields import FieldKey
from dms_migration.core.lifecycle import count_statuses, is_complete, is_skip_allowed
from dms_migration.domain import RevisionCandidate, UploadMode

router = APIRouter(prefix="/documents", tags=["documents"])


def _serialise_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _serialise_fields(fields: dict[FieldKey, Any]) -> dict[str, Any]:
    return {key.value: _serialise_value(value) for key, value in fields.items()}


def _candidate_view(candidate: RevisionCandidate) -> dict[str, Any]:
    return {
        "match_found": candidate.match_found,
        "item_id": candidate.item_id,
        "next_revision_token": candidate.next_revision_token,
        "suggestion": candidate.suggestion,
        "overwrite_warning_text": candidate.overwrite_warning_text,
        "search_warning": candidate.search_warning,
        "autofill": {key.value: value for key, value in candidate.autofill},
        "versions": [
            {
                "version_label": version.version_label,
                "revision_marker": version.revision_marker,
                "file_name": version.file_name,
            }
            for version in candidate.existing_versions
        ],
    }


def _document_view(session: DocumentSession) -> dict[str, Any]:
    document = session.document
    pages = []
    for key in document.page_keys():
        page = document.pages[key]
        fields = document.page_fields.get(key, {})
        candidate = session.revision_candidates.get(key)
        pages.append(
            {
                "key": key,
                "number": page.number,
                "status": page.status.value,
                "rendered_image": page.rendered_image,
                "repository_id": page.repository_id,
                "suggested_values": page.suggested_values,
                "fields": _serialise_fields(fields),
                "skip_allowed": is_skip_allowed(page, fields),
                "revision": _candidate_view(candidate) if candidate else None,
            }
        )
    return {
        "name": document.name,
        "total_pages": document.total_pages,
        "counts": count_statuses(document.pages.values()).as_dict(),
        "complete": is_complete(document),
        "common_fields": _serialise_fields(document.common_fields),
        "poll_error": session.poll_error,
        "background_errors": session.background_errors,
        "pages": pages,
    }


@router.post("")
async def open_document(payload: dict) -> dict:
    name = payload.get("name")
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    services = get_services()
    session = await services.coordinator.start_or_resume(str(name), resumed=bool(payload.get("resumed")))
    return _document_view(session)


@router.post("/upload")
async def upload_document(file: UploadFile = File(...)) -> dict:
    services = get_services()
    content = await file.read()
    session = await services.coordinator.ingest(file.filename or "document.pdf", content)
    return _document_view(session)


@router.get("/{name}")
async def get_document(name: str) -> dict:
    session = get_services().registry.get(name)
    return _document_view(session)


@router.post("/{name}/refresh")
async def refresh_document(name: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    applied = await services.coordinator.refresh(session)
    view = _document_view(session)
    view["applied"] = applied
    return view


@router.put("/{name}/fields")
async def change_field(name: str, payload: dict) -> dict:
    field = payload.get("field")
    if not field:
        raise HTTPException(status_code=400, detail="field is required")
    try:
        key = FieldKey(field)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"unknown field '{field}'") from exc
    services = get_services()
    session = services.registry.get(name)
    await services.propagator.change_field(session, key, payload.get("value"), page_key=payload.get("page_key"))
    return _document_view(session)


@router.post("/{name}/pages/{page_key}/skip")
async def skip_page(name: str, page_key: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    await services.coordinator.skip_page(session, page_key)
    return _document_view(session)


@router.post("/{name}/pages/{page_key}/reenter")
async def reenter_page(name: str, page_key: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    await services.coordinator.reenter_page(session, page_key)
    return _document_view(session)


@router.get("/{name}/pages/{page_key}/revision")
async def evaluate_revision(name: str, page_key: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    session.page(page_key)
    candidate = await services.resolver.evaluate(session.merged_fields(page_key))
    return _candidate_view(candidate)


@router.post("/{name}/pages/{page_key}/submit")
async def submit_page(name: str, page_key: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    try:
        mode = UploadMode(payload.get("mode") or UploadMode.DRAFT.value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="mode must be draft, for_approval or pre_approve") from exc
    services = get_services()
    session = services.registry.get(name)
    item_id = await services.uploads.submit(
        session, page_key, confirmed=bool(payload.get("confirmed")), mode=mode
    )
    return {"page_key": page_key, "repository_id": item_id, "document": _document_view(session)}


@router.post("/{name}/submit")
async def submit_document(name: str, payload: dict | None = None) -> dict:
    payload = payload or {}
    services = get_services()
    session = services.registry.get(name)
    await services.uploads.submit(session, confirmed=bool(payload.get("confirmed")))
    return _document_view(session)


@router.post("/{name}/save")
async def save_document(name: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    saved = await services.coordinator.save_progress(session)
    return {
        "common_fields": _serialise_fields(saved.common),
        "pages": {str(number): _serialise_fields(fields) for number, fields in saved.pages.items()},
    }


@router.post("/{name}/close")
async def close_document(name: str) -> dict:
    await get_services().coordinator.close(name)
    return {"name": name, "closed": True}


@router.delete("/{name}")
async def delete_document(name: str) -> dict:
    services = get_services()
    session = services.registry.get(name)
    await services.coordinator.delete(session)
    return {"name": name, "deleted": True}
