"""Health domain router.

Health check endpoint for monitoring and load balancers.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from cashback.core.constants import Routes
from cashback.core.deps import EphemeralStoreDep, SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix=Routes.HEALTH.prefix, tags=[Routes.HEALTH.tag])


@router.get("")
async def health(session: SessionDep, store: EphemeralStoreDep):
    """Health check with database and ephemeral store connectivity."""
    checks = {"database": "ok", "store": "ok"}

    try:
        session.exec(text("SELECT 1"))
    except Exception:
        logger.exception("Database health check failed")
        checks["database"] = "error"

    try:
        if not await store.ping():
            checks["store"] = "error"
    except Exception:
        logger.exception("Ephemeral store health check failed")
        checks["store"] = "error"

    if "error" in checks.values():
        return JSONResponse(status_code=503, content={"status": "unhealthy", **checks})
    return {"status": "ok", **checks}
