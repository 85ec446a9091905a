from fastapi import APIRouter, Depends, HTTPException

from listingsync.core.errors import CredentialError, FetchError
from listingsync.services.internal_admin import require_internal_admin
from listingsync.services.run_lock import RunAlreadyInProgress
from listingsync.services.runner import plan_once, run_sync_locked

router = APIRouter()

@router.post("/internal/sync/run", dependencies=[Depends(require_internal_admin)])
async def internal_run_sync() -> dict:
    try:
        result = await run_sync_locked()
    except RunAlreadyInProgress as e:
        raise HTTPException(status_code=409, detail=str(e))
    return result.to_dict()


@router.get("/internal/sync/plan", dependencies=[Depends(require_internal_admin)])
async def internal_plan_sync() -> dict:
    try:
        summary = await plan_once()
    except (CredentialError, FetchError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return summary.to_dict()
