from fastapi import APIRouter

from listingsync.api.v1.endpoints.health import router as health_router
from listingsync.api.v1.endpoints.internal import router as internal_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(internal_router, tags=["internal"])
