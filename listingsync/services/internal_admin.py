import hmac

from fastapi import Header, HTTPException

from listingsync.core.config import settings

UNSET_KEY = "IN_ENV"


async def require_internal_admin(x_internal_admin_key: str | None = Header(default=None)) -> None:
    expected = settings.internal_admin_key
    # a deployment that never set the key keeps the manual trigger closed
    if not expected or expected == UNSET_KEY:
        raise HTTPException(status_code=403, detail="Internal admin key not configured")
    if not x_internal_admin_key or not hmac.compare_digest(x_internal_admin_key, expected):
        raise HTTPException(status_code=403, detail="Internal admin key required")
