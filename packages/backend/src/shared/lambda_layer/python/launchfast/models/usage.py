from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, computed_field
from typing import Optional


class UsageAction(str, Enum):
    """Metered actions"""
    SEARCH = "search"
    CSV_EXPORT = "csv_export"
    API_CALL = "api_call"

    @property
    def counter_field(self) -> str:
        """Name of the UsageRecord counter tracking this action"""
        return {
            UsageAction.SEARCH: "searches_used",
            UsageAction.CSV_EXPORT: "csv_exports_used",
            UsageAction.API_CALL: "api_calls_used",
        }[self]


def current_month(now: Optional[datetime] = None) -> str:
    """Usage window key in YYYY-MM format (UTC)"""
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m")


class UsageRecord(BaseModel):
    """Per-user, per-month usage counters. A missing row means all zero."""
    user_id: str
    month_year: str = Field(default_factory=current_month, description="YYYY-MM window")
    searches_used: int = Field(default=0, ge=0)
    csv_exports_used: int = Field(default=0, ge=0)
    api_calls_used: int = Field(default=0, ge=0)
    last_updated: Optional[datetime] = Field(default=None)

    def count_for(self, action: UsageAction) -> int:
        return getattr(self, action.counter_field)

    @classmethod
    def from_dynamodb_item(cls, item: dict) -> "UsageRecord":
        return cls(
            user_id=item["user_id"],
            month_year=item["month_year"],
            searches_used=int(item.get("searches_used", 0)),
            csv_exports_used=int(item.get("csv_exports_used", 0)),
            api_calls_used=int(item.get("api_calls_used", 0)),
            last_updated=item.get("last_updated"),
        )


class UsageDecision(BaseModel):
    """Outcome of evaluating one action against a tier's limits"""
    allow_action: bool
    action: UsageAction
    tier: str
    status: Optional[str] = None
    current_count: int = 0
    limit: int = Field(description="Numeric cap, -1 when unlimited or feature-gated")
    reason: Optional[str] = None
    upgrade_required: bool = False

    @computed_field
    @property
    def remaining(self) -> int:
        """Remaining uses this month, -1 when not capped"""
        if self.limit == -1:
            return -1
        return max(0, self.limit - self.current_count)


class UsageCheckResult(BaseModel):
    """Decision plus counters after any increment"""
    decision: UsageDecision
    usage: UsageRecord
    incremented: bool = False

    @computed_field
    @property
    def allow_action(self) -> bool:
        return self.decision.allow_action
