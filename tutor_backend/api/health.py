"""
Health endpoints.

/healthz - liveness, no dependencies
/readyz - readiness: the configured usage store answers a count query
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from tutor_backend.core.errors import StorageUnavailableError
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.service import get_ledger

logger = logging.getLogger("tutor")

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(ledger: QuotaLedger = Depends(get_ledger)):
    """Readiness check: usage store reachable."""
    try:
        ledger.check_store()
    except StorageUnavailableError as e:
        logger.error(f"[readyz] usage store unavailable: {e.message}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "usage store unreachable"})
    return {"status": "ok", "store": type(ledger.store).__name__}
