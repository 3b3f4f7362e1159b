"""Admin endpoints for key pool and cache maintenance."""

import time
from typing import Dict

from fastapi import APIRouter, HTTPException, Request

admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/status")
async def get_all_status(request: Request) -> Dict[str, object]:
    """Get status of both key pools and the dispatcher queues."""
    services = request.app.state.services
    return services.status()


@admin_router.get("/status/{pool}/{key_id}")
async def get_key_status(request: Request, pool: str, key_id: str) -> Dict[str, object]:
    """Get status of a specific API key."""
    key_pool = request.app.state.services.pool(pool)
    if key_pool is None:
        raise HTTPException(status_code=404, detail=f"Pool {pool} not found")
    status = key_pool.get_key_status(key_id)
    if status is None:
        raise HTTPException(status_code=404, detail=f"Key {key_id} not found")
    return status


@admin_router.post("/purge-expired")
async def purge_expired(request: Request) -> Dict[str, object]:
    """Delete expired cache rows."""
    store = request.app.state.services.store
    removed = await store.purge_expired(time.time())
    return {"message": "Expired cache entries purged", "removed": removed}
