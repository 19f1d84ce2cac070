"""
Health check API route
"""

from datetime import datetime, timezone
from fastapi import APIRouter, HTTPException, Request
from reactive_demo.database.connection import get_db_pool

router = APIRouter()

@router.get("/health")
async def health_check(request: Request):
    """
    Health check - reports database connectivity for the postgres backend.
    The memory backend has no database and is always healthy.
    """
    backend = request.app.state.settings.repository_backend
    response = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "backend": backend,
    }

    if backend != "postgres":
        response["database"] = "not_configured"
        return response

    db_pool = get_db_pool()
    if db_pool is None:
        raise HTTPException(status_code=503, detail="Health check failed: database pool not initialized")

    try:
        async with db_pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception as e:
        raise HTTPException(status_code=503, detail=f"Health check failed: {str(e)}")

    response["database"] = "connected"
    return response
