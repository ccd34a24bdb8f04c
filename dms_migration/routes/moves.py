from __future__ import annotations

from fastapi import APIRouter, HTTPException

from dms_migration.application import get_services

router = APIRouter(prefix="/moves", tags=["moves"])


@router.post("")
async def move_file(payload: dict) -> dict:
    missing = [key for key in ("site", "source", "destination") if not payload.get(key)]
    if missing:
        raise HTTPException(status_code=400, detail=f"{', '.join(missing)} required")
    services = get_services()
    site = services.terms.site(str(payload["site"]))
    result = await services.folders.move(site.url, str(payload["source"]), str(payload["destination"]))
    return {
        "source": result.source,
        "destination": result.destination,
        "status": result.status,
        "warnings": result.warnings,
        "job_id": result.job_id,
    }
