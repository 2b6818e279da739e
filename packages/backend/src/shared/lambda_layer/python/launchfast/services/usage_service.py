"""
Usage Limiter for LaunchFast

Decides whether a metered action is allowed for a user's tier this month and
records accepted actions. The decision itself is a pure function; the
DynamoDB-backed service applies increments with a single conditional upsert
so concurrent requests cannot push a capped counter past its limit.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ..constants.subscription_tiers import (
    SUBSCRIPTION_PLANS,
    TIER_ALIASES,
    TIER_EXPIRED,
    TIER_FREE,
    TIERS_REQUIRING_STATUS,
)
from ..models.usage import (
    UsageAction,
    UsageCheckResult,
    UsageDecision,
    UsageRecord,
    current_month,
)
from .aws import get_ddb_table
from .subscription_state import get_subscription_limits, has_active_subscription

logger = Logger()


class UsageTrackingError(Exception):
    """Raised when usage counters cannot be read or written"""

    pass


def resolve_usage_tier(tier: Optional[str]) -> str:
    """
    Map a raw profile tier to a usage plan id.

    A profile without a tier is on the free plan; anything unrecognized is
    treated as expired so it gets no access.
    """
    if not tier or not isinstance(tier, str):
        return TIER_FREE
    normalized = tier.strip().lower()
    if normalized in SUBSCRIPTION_PLANS:
        return normalized
    return TIER_ALIASES.get(normalized, TIER_EXPIRED)


def evaluate_usage(
    tier: Optional[str],
    status: Optional[str],
    usage: Optional[UsageRecord],
    action: Union[UsageAction, str],
) -> UsageDecision:
    """
    Decide whether the action is allowed. Performs no I/O.

    Args:
        tier: Raw subscription tier from the profile
        status: Raw subscription status from the profile
        usage: Current month's usage row, None when the user has none yet
        action: Action kind to evaluate

    Returns:
        UsageDecision with the current (pre-increment) count
    """
    action = UsageAction(action)
    plan_id = resolve_usage_tier(tier)
    limits = get_subscription_limits(plan_id)
    current_count = usage.count_for(action) if usage else 0

    if plan_id in TIERS_REQUIRING_STATUS and not has_active_subscription(status):
        return UsageDecision(
            allow_action=False,
            action=action,
            tier=plan_id,
            status=status,
            current_count=current_count,
            limit=limits.monthly_searches if action == UsageAction.SEARCH else -1,
            reason="Subscription is not active",
            upgrade_required=True,
        )

    if action == UsageAction.SEARCH:
        limit = limits.monthly_searches
        allowed = limit == -1 or current_count < limit
        reason = None if allowed else f"Monthly search limit reached ({limit})"
    elif action == UsageAction.CSV_EXPORT:
        limit = -1
        allowed = limits.csv_exports
        reason = None if allowed else f"CSV exports are not available on the {plan_id} plan"
    else:
        limit = -1
        allowed = limits.api_access
        reason = None if allowed else f"API access is not available on the {plan_id} plan"

    return UsageDecision(
        allow_action=allowed,
        action=action,
        tier=plan_id,
        status=status,
        current_count=current_count,
        limit=limit,
        reason=reason,
        upgrade_required=not allowed,
    )


def next_reset_date(now: Optional[datetime] = None) -> datetime:
    """First instant of the next usage window (UTC)"""
    now = now or datetime.now(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


class UsageService:
    """Monthly usage counters stored as PK=USER#<id>, SK=USAGE#<YYYY-MM>"""

    def __init__(self, table_name: Optional[str] = None):
        self.table_name = table_name or os.environ.get("USAGE_TABLE_NAME", "lf-usage-dev")
        self._table = None

    @property
    def table(self):
        """Lazy load DynamoDB table."""
        if self._table is None:
            self._table = get_ddb_table(self.table_name)
        return self._table

    @staticmethod
    def _key(user_id: str, month: str) -> Dict[str, str]:
        return {"PK": f"USER#{user_id}", "SK": f"USAGE#{month}"}

    def get_usage(self, user_id: str, month: Optional[str] = None) -> Optional[UsageRecord]:
        """
        Usage row for a month.

        Returns:
            UsageRecord, or None when nothing was recorded that month
        """
        month = month or current_month()
        try:
            response = self.table.get_item(Key=self._key(user_id, month))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting usage for user {user_id} ({month}): {e}")
            raise UsageTrackingError(f"Failed to read usage for {user_id}") from e

        if "Item" not in response:
            return None
        return UsageRecord.from_dynamodb_item(response["Item"])

    def _increment(
        self, user_id: str, month: str, action: UsageAction, limit: int, now: datetime
    ) -> Optional[int]:
        """
        Atomically add one to the action's counter, creating the row if needed.

        Returns:
            The new count, or None when the cap was already reached
        """
        counter = action.counter_field
        update_kwargs: Dict[str, Any] = {
            "Key": self._key(user_id, month),
            "UpdateExpression": (
                "SET #counter = if_not_exists(#counter, :zero) + :one, "
                "user_id = :user_id, month_year = :month, last_updated = :timestamp"
            ),
            "ExpressionAttributeNames": {"#counter": counter},
            "ExpressionAttributeValues": {
                ":zero": 0,
                ":one": 1,
                ":user_id": user_id,
                ":month": month,
                ":timestamp": now.isoformat(),
            },
            "ReturnValues": "UPDATED_NEW",
        }
        if limit != -1:
            update_kwargs["ConditionExpression"] = "attribute_not_exists(#counter) OR #counter < :limit"
            update_kwargs["ExpressionAttributeValues"][":limit"] = limit

        try:
            response = self.table.update_item(**update_kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(f"Concurrent request consumed the last {action.value} for user {user_id}")
                return None
            logger.error(f"Error recording {action.value} usage for user {user_id}: {e}")
            raise UsageTrackingError(f"Failed to record usage for {user_id}") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error recording usage for user {user_id}: {e}")
            raise UsageTrackingError(f"Failed to record usage for {user_id}") from e

        return int(response["Attributes"][counter])

    def check_usage(
        self,
        user_id: str,
        tier: Optional[str],
        status: Optional[str],
        action: Union[UsageAction, str],
        increment: bool = False,
        now: Optional[datetime] = None,
    ) -> UsageCheckResult:
        """
        Check an action against the user's limits and optionally consume one use.

        Denied actions are never recorded.
        """
        now = now or datetime.now(timezone.utc)
        month = current_month(now)
        usage = self.get_usage(user_id, month)
        decision = evaluate_usage(tier, status, usage, action)
        usage = usage or UsageRecord(user_id=user_id, month_year=month)

        if not decision.allow_action:
            logger.info(f"Denied {decision.action.value} for user {user_id}: {decision.reason}")
            return UsageCheckResult(decision=decision, usage=usage)

        if not increment:
            return UsageCheckResult(decision=decision, usage=usage)

        new_count = self._increment(user_id, month, decision.action, decision.limit, now)
        if new_count is None:
            denied = decision.model_copy(update={
                "allow_action": False,
                "current_count": max(decision.current_count, decision.limit),
                "reason": f"Monthly search limit reached ({decision.limit})",
                "upgrade_required": True,
            })
            return UsageCheckResult(decision=denied, usage=usage)

        logger.info(f"Recorded {decision.action.value} for user {user_id} ({month}): {new_count}")
        return UsageCheckResult(
            decision=decision.model_copy(update={"current_count": new_count}),
            usage=usage.model_copy(update={decision.action.counter_field: new_count, "last_updated": now}),
            incremented=True,
        )

    def release_usage(self, user_id: str, action: Union[UsageAction, str], now: Optional[datetime] = None) -> None:
        """Give back one use recorded by check_usage(increment=True)"""
        action = UsageAction(action)
        month = current_month(now or datetime.now(timezone.utc))
        try:
            self.table.update_item(
                Key=self._key(user_id, month),
                UpdateExpression="SET #counter = #counter - :one",
                ConditionExpression="#counter > :zero",
                ExpressionAttributeNames={"#counter": action.counter_field},
                ExpressionAttributeValues={":zero": 0, ":one": 1},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(f"No {action.value} usage to release for user {user_id} ({month})")
                return
            logger.error(f"Error releasing {action.value} usage for user {user_id}: {e}")
            raise UsageTrackingError(f"Failed to release usage for {user_id}") from e
        except BotoCoreError as e:
            logger.error(f"AWS connection error releasing usage for user {user_id}: {e}")
            raise UsageTrackingError(f"Failed to release usage for {user_id}") from e

        logger.info(f"Released one {action.value} for user {user_id} ({month})")

    def get_current_usage_summary(
        self, user_id: str, tier: Optional[str], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Search usage for the dashboard header"""
        now = now or datetime.now(timezone.utc)
        plan_id = resolve_usage_tier(tier)
        usage = self.get_usage(user_id, current_month(now))
        limit = get_subscription_limits(plan_id).monthly_searches

        return {
            "monthly_searches": usage.searches_used if usage else 0,
            "limit": limit,
            "unlimited": limit == -1,
            "reset_date": next_reset_date(now).isoformat(),
            "subscription_tier": plan_id,
        }
