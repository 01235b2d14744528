from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from starlette.concurrency import run_in_threadpool

from src.infrastructure.api.dependencies import get_storage
from src.infrastructure.storage.supabase_storage import StorageError, SupabaseStorage

router = APIRouter(prefix="/local-storage", tags=["Storage"])


@router.put(
    "/{path:path}",
    status_code=status.HTTP_200_OK,
    summary="Local Signed Upload",
    description="""
    Target of the signed upload URLs issued while Supabase is disabled.
    Accepts the raw object bytes once per token; existing objects are never
    overwritten. Not available when real Supabase Storage is configured.
    """,
)
async def put_object(
    path: str,
    request: Request,
    token: str = Query(..., description="Upload token from the upload plan"),
    storage: SupabaseStorage = Depends(get_storage),
):
    if not storage.local_mode:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    credential = storage.local_credential(path, token)
    if credential is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or used upload token")

    data = await request.body()
    content_type = request.headers.get("content-type", "application/octet-stream")
    try:
        await run_in_threadpool(storage.put, credential, data, content_type)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return {"path": path, "bytes": len(data)}
