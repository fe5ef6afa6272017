"""
Quota status API.

GET /api/quota/status - remaining / limit / used / resetAt for one action
GET /api/limits/daily - allowed / remaining / limit / resetAt for one action
GET /api/limits - status for every metered action

All are read-only: they never consume quota.
"""

from fastapi import APIRouter, Depends, Query

from tutor_backend.core.auth import get_current_user_id
from tutor_backend.features.quota.ledger import QuotaLedger
from tutor_backend.features.quota.limits import CHAT_REQUEST, action_limits, limit_for
from tutor_backend.features.quota.service import get_ledger

router = APIRouter(prefix="/api", tags=["quota"])


@router.get("/quota/status")
def get_quota_status(
    action: str = Query(CHAT_REQUEST, description="Metered action tag"),
    user_id: str = Depends(get_current_user_id),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    """
    Report today's usage for the current user.

    Returns:
        {
            "status": {
                "remaining": 42,
                "limit": 50,
                "used": 8,
                "resetAt": "2025-03-10T23:59:59Z"
            }
        }
    """
    status = ledger.peek_status(user_id, action, limit_for(action))
    data = status.to_dict()
    data.pop("allowed")
    return {"status": data}


@router.get("/limits/daily")
def get_daily_limit(
    action: str = Query(CHAT_REQUEST, description="Metered action tag"),
    user_id: str = Depends(get_current_user_id),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    """Whether the current user may still perform `action` today."""
    status = ledger.peek_status(user_id, action, limit_for(action))
    data = status.to_dict()
    data.pop("used")
    return {"status": data}


@router.get("/limits")
def list_daily_limits(
    user_id: str = Depends(get_current_user_id),
    ledger: QuotaLedger = Depends(get_ledger),
) -> dict:
    """Status for every metered action, keyed by action tag."""
    return {
        "status": {
            action: ledger.peek_status(user_id, action, limit).to_dict()
            for action, limit in action_limits().items()
        }
    }
