from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from dms_migration.application import get_services, is_on_latest_approved_version
from dms_migration.domain import ApprovalAction, ApprovalState

router = APIRouter(prefix="/approvals", tags=["approvals"])


def _state_view(state: ApprovalState, *, editable: bool | None = None) -> dict[str, Any]:
    view: dict[str, Any] = {
        "item_id": state.item_id,
        "status": state.status.name.lower(),
        "comment": state.comment,
        "auto_approve_eligible": state.auto_approve_eligible,
        "edit_locked": state.edit_locked,
        "file_ref": state.file_ref,
        "folder": state.folder,
    }
    if editable is not None:
        view["editable"] = editable
    if state.move is not None:
        view["move"] = {"status": state.move.status, "warnings": list(state.move.warnings)}
    return view


@router.get("/{site}/{item_id}")
async def get_approval_state(site: str, item_id: str) -> dict:
    services = get_services()
    state = await services.approvals.load_state(site, item_id)
    versions = await services.repository.list_item_versions(state.site_url, state.item_id)
    return _state_view(state, editable=is_on_latest_approved_version(state, versions))


@router.post("/{site}/{item_id}")
async def transition_approval(site: str, item_id: str, payload: dict) -> dict:
    try:
        action = ApprovalAction(payload.get("action"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="unknown approval action") from exc
    services = get_services()
    state = await services.approvals.load_state(site, item_id)
    updated = await services.approvals.transition(
        state,
        action,
        comment=payload.get("comment") or payload.get("reason"),
        minor_version=bool(payload.get("minor_version")),
    )
    return _state_view(updated)
