from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from src.application.dtos.photo_dto import SweepOrphansResponse
from src.application.use_cases.sweep_orphans import SweepOrphansUseCase
from src.infrastructure.api.dependencies import get_sweep_orphans, require_admin_key

router = APIRouter(prefix="/parties", tags=["Maintenance"], dependencies=[Depends(require_admin_key)])


@router.post(
    "/{party_id}/orphans/sweep",
    response_model=SweepOrphansResponse,
    status_code=status.HTTP_200_OK,
    summary="Sweep Orphaned Objects",
    description="""
    Delete storage objects of a party that no photo row references, such as
    those left behind when cleanup after a failed upload did not succeed.

    Objects newer than the grace period are never touched.
    Use `dry_run=true` to only list them. Requires the `X-Admin-Key` header.
    """,
)
def sweep_orphans(
    party_id: str,
    dry_run: bool = Query(False, description="List orphans without deleting them"),
    sweep: SweepOrphansUseCase = Depends(get_sweep_orphans),
):
    result = sweep.execute(party_id, dry_run=dry_run)
    return SweepOrphansResponse(
        party_id=result.party_id, orphans=result.orphans, deleted=result.deleted, dry_run=result.dry_run
    )
