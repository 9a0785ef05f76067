"""Backup and restore API endpoints.

Export produces a downloadable snapshot of everything the caller owns;
restore applies an uploaded snapshot for the same caller.
"""

from typing import Any

from fastapi import APIRouter, Body
from fastapi.responses import JSONResponse

from planner.api.dependencies import CallerContext, DbSession
from planner.common.config import get_settings
from planner.common.logging import get_logger
from planner.schemas.backup import RestoreResponse
from planner.services.backup import export_snapshot, restore_snapshot

logger = get_logger(__name__)

router = APIRouter(prefix="/backup", tags=["backup"])


@router.get("")
async def download_backup(
    db: DbSession,
    context: CallerContext,
) -> JSONResponse:
    """Export the caller's data as a snapshot file."""
    settings = get_settings()
    snapshot = await export_snapshot(db, context)

    filename = f"{settings.backup.filename_prefix}-{context.now.date().isoformat()}.json"
    return JSONResponse(
        content=snapshot.model_dump(mode="json", by_alias=True),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("", response_model=RestoreResponse)
async def restore_backup(
    db: DbSession,
    context: CallerContext,
    payload: Any = Body(...),
) -> RestoreResponse:
    """Restore a snapshot previously exported by the caller.

    Records whose ids already exist are left untouched. The whole restore is
    a single transaction.
    """
    logger.info("Snapshot restore requested", user_id=context.user_id)
    restored = await restore_snapshot(db, payload, context)
    return RestoreResponse(
        success=True,
        message="Backup restored successfully",
        restored=restored,
    )
