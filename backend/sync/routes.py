"""
simple-text API routes

Provides REST endpoints for buffer capture:
- POST /api/simple-text       append text to a buffer, commit and push
- GET  /api/simple-text       liveness
- POST /api/simple-text/push  re-send an existing local commit

Any engine failure is a 500 whose detail is the error description.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from models.sync_models import BufferSyncRequest, BufferSyncResponse, PushRetryResponse
from sync.errors import SyncError
from sync.service import SyncService, get_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["simple-text"])


@router.post("/simple-text", response_model=BufferSyncResponse)
async def upload_text(
    data: BufferSyncRequest,
    service: SyncService = Depends(get_sync_service),
):
    """Append text to a buffer and propagate it to the remote."""
    result = await service.sync_buffer(data.buffer, data.text)

    if not result.success:
        detail = result.error or "Sync failed"
        if result.plaintext_exposed:
            detail = f"{detail} (buffer left unencrypted on disk)"
        raise HTTPException(status_code=500, detail=detail)

    return BufferSyncResponse.from_result(result)


@router.get("/simple-text")
async def basic_get():
    """Liveness endpoint for the capture API."""
    return {"message": "GET Received!"}


@router.post("/simple-text/push", response_model=PushRetryResponse)
async def retry_push(service: SyncService = Depends(get_sync_service)):
    """Push the local branch again without creating a new commit."""
    try:
        commit = await service.retry_push()
    except SyncError as e:
        logger.error(f"Push retry failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return PushRetryResponse(success=True, commit=commit)
