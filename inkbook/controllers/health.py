from typing import Any

from fastapi import APIRouter

from inkbook import db, state

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, Any]:
    redis_status = "disconnected"
    if state.redis_client:
        try:
            await state.redis_client.ping()
            redis_status = "healthy"
        except Exception:
            redis_status = "unhealthy"

    return {
        "status": "ok",
        "redis": redis_status,
        "database": db.get_pool_stats() if state.db_enabled else {"status": "disabled"},
    }
