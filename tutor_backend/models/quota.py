"""Quota window and decision models."""

from datetime import datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class QuotaWindow(BaseModel):
    """UTC calendar day. Both bounds are inclusive."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def count_until(self) -> datetime:
        """Inclusive upper bound for counting, covering sub-second instants after `end`."""
        return self.end.replace(microsecond=999999)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.count_until


class QuotaCheckResult(BaseModel):
    """Outcome of a check-and-consume call."""
    model_config = ConfigDict(frozen=True)

    allowed: bool
    remaining: int = Field(ge=0)
    limit: int = Field(ge=0)
    reset_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "remaining": self.remaining,
            "limit": self.limit,
            "resetAt": _iso(self.reset_at),
        }


class QuotaStatus(QuotaCheckResult):
    """Read-only status report; adds the number of units used today."""

    used: int = Field(ge=0)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["used"] = self.used
        return data
