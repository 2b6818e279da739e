"""
Subscription State Resolver

Normalizes raw billing fields from a profile row into a validated
SubscriptionState with capability flags. Performs no I/O and never raises:
every anomaly ends up in SubscriptionState.errors, and an invalid state
grants no access.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from aws_lambda_powertools import Logger
from pydantic import ValidationError

from ..constants.subscription_tiers import (
    ACTIVE_STATUSES,
    SUBSCRIPTION_PLANS,
    TIER_ALIASES,
    TIER_EXPIRED,
    TIER_PRO,
    TIERS_REQUIRING_STATUS,
    TRIAL_STATUS,
)
from ..models.subscription import (
    PlanLimits,
    RecommendedAction,
    SubscriptionData,
    SubscriptionPlan,
    SubscriptionState,
    SubscriptionTier,
)

logger = Logger()


def get_subscription_plan(plan_id: Optional[str]) -> SubscriptionPlan:
    """Plan definition for a tier id, defaulting to the expired plan (no access)"""
    config = SUBSCRIPTION_PLANS.get(plan_id or TIER_EXPIRED, SUBSCRIPTION_PLANS[TIER_EXPIRED])
    return SubscriptionPlan(
        name=config["name"],
        description=config["description"],
        price_cents=config["price_cents"],
        stripe_price_id=config["stripe_price_id"],
        features=config["features"],
        limits=PlanLimits(**config["limits"]),
    )


def get_subscription_limits(plan_id: Optional[str]) -> PlanLimits:
    return get_subscription_plan(plan_id).limits


def is_feature_allowed(plan_id: Optional[str], feature: str) -> bool:
    return bool(getattr(get_subscription_limits(plan_id), feature, False))


def get_monthly_search_limit(plan_id: Optional[str]) -> int:
    return get_subscription_limits(plan_id).monthly_searches


def has_unlimited_searches(plan_id: Optional[str]) -> bool:
    return get_monthly_search_limit(plan_id) == -1


def has_active_subscription(subscription_status: Optional[str]) -> bool:
    return (subscription_status or "") in ACTIVE_STATUSES


def normalize_subscription_tier(tier: Any) -> Optional[SubscriptionTier]:
    """Map a raw tier string (including legacy aliases) to a SubscriptionTier"""
    if not tier or not isinstance(tier, str):
        return None
    normalized = TIER_ALIASES.get(tier.strip().lower())
    return SubscriptionTier(normalized) if normalized else None


def _parse_period_end(value: str) -> Optional[datetime]:
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, TypeError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _create_error_state(errors: List[str]) -> SubscriptionState:
    return SubscriptionState(
        tier=SubscriptionTier.EXPIRED,
        status=None,
        is_active=False,
        is_valid=False,
        plan=get_subscription_plan(TIER_EXPIRED),
        can_access_features=False,
        can_manage_subscription=False,
        has_unlimited_access=False,
        current_period_end=None,
        will_cancel_at_period_end=False,
        has_stripe_customer=False,
        errors=errors,
    )


def get_subscription_state(
    data: Union[SubscriptionData, Dict[str, Any], None],
    now: Optional[datetime] = None,
) -> SubscriptionState:
    """
    Build the subscription state for one profile row.

    Args:
        data: Billing fields of the profile, or None when no profile exists
        now: Reference time for the period-end check, defaults to UTC now

    Returns:
        SubscriptionState: Always fully populated
    """
    if data is None:
        return _create_error_state(["No subscription data available"])

    if isinstance(data, dict):
        try:
            data = SubscriptionData.model_validate(data)
        except ValidationError as exc:
            logger.warning(f"Malformed subscription data: {exc}")
            return _create_error_state([f"Malformed subscription data: {exc.error_count()} invalid field(s)"])

    now = now or datetime.now(timezone.utc)
    errors: List[str] = []

    tier = normalize_subscription_tier(data.subscription_tier)
    if not data.subscription_tier:
        errors.append("Missing subscription tier")
    elif tier is None:
        errors.append(f"Invalid subscription tier: {data.subscription_tier}")

    plan = get_subscription_plan(tier.value if tier else TIER_EXPIRED)
    is_active = has_active_subscription(data.subscription_status)

    # Unlimited access is granted without a billing status
    if tier and tier.value in TIERS_REQUIRING_STATUS and not data.subscription_status:
        errors.append("Subscription tier indicates active plan but no status provided")

    current_period_end = None
    if data.current_period_end:
        current_period_end = _parse_period_end(data.current_period_end)
        if current_period_end is None:
            errors.append("Invalid current_period_end date")

    # Reported, not corrected: the error alone makes the state invalid
    if current_period_end and current_period_end < now and is_active:
        errors.append("Subscription marked as active but period has ended")

    is_unlimited = tier == SubscriptionTier.UNLIMITED
    is_pro = tier == SubscriptionTier.PRO
    has_stripe_customer = bool(data.stripe_customer_id)

    is_valid = not errors and (is_unlimited or (is_pro and is_active) or tier == SubscriptionTier.EXPIRED)
    can_access_features = is_valid and (is_unlimited or (is_pro and is_active))
    can_manage_subscription = has_stripe_customer and (is_pro or tier == SubscriptionTier.EXPIRED)

    if errors:
        logger.warning(f"Subscription state has errors: {errors}")

    return SubscriptionState(
        tier=tier or SubscriptionTier.EXPIRED,
        status=data.subscription_status,
        is_active=is_active,
        is_valid=is_valid,
        plan=plan,
        can_access_features=can_access_features,
        can_manage_subscription=can_manage_subscription,
        has_unlimited_access=is_unlimited,
        current_period_end=current_period_end,
        will_cancel_at_period_end=bool(data.cancel_at_period_end),
        has_stripe_customer=has_stripe_customer,
        errors=errors,
    )


def apply_active_trial(data: Optional[SubscriptionData], now: Optional[datetime] = None) -> Optional[SubscriptionData]:
    """
    Billing fields as seen during a promo trial.

    While the trial runs, a user without a paid plan of their own is treated
    as pro with status "trialing". Anything else is returned unchanged.
    """
    if data is None or data.trial_status != "active" or not data.trial_end_date:
        return data

    trial_end = _parse_period_end(data.trial_end_date)
    now = now or datetime.now(timezone.utc)
    if trial_end is None or trial_end <= now:
        return data

    tier = normalize_subscription_tier(data.subscription_tier)
    paying = tier == SubscriptionTier.PRO and has_active_subscription(data.subscription_status)
    if paying or tier == SubscriptionTier.UNLIMITED:
        return data

    return data.model_copy(update={
        "subscription_tier": TIER_PRO,
        "subscription_status": TRIAL_STATUS,
        "current_period_end": data.trial_end_date,
        "cancel_at_period_end": True,
    })


def get_subscription_status_message(state: SubscriptionState) -> str:
    """User-facing billing status line"""
    if state.has_errors:
        return f"Subscription data error: {state.errors[0]}"

    if state.has_unlimited_access:
        return "You have unlimited access to all features"

    if state.tier == SubscriptionTier.PRO and state.is_active:
        if state.current_period_end:
            end_date = state.current_period_end.strftime("%B %d, %Y")
            if state.will_cancel_at_period_end:
                return f"Pro subscription ends on {end_date} (will not renew)"
            return f"Pro subscription renews on {end_date}"
        return "Pro subscription is active"

    if state.tier == SubscriptionTier.EXPIRED or not state.is_active:
        return "Subscription expired - upgrade to continue using features"

    return "Subscription status unknown"


def get_recommended_actions(state: SubscriptionState) -> List[RecommendedAction]:
    """Actions the billing page should offer, most urgent first within each group"""
    actions: List[RecommendedAction] = []

    if state.has_errors:
        actions.append(RecommendedAction(
            action="retry",
            label="Refresh subscription data",
            description="Try reloading your subscription information",
            priority="high",
        ))
        actions.append(RecommendedAction(
            action="contact_support",
            label="Contact support",
            description="Get help resolving subscription data issues",
            priority="medium",
        ))

    if state.tier == SubscriptionTier.EXPIRED or (not state.is_active and not state.has_unlimited_access):
        actions.append(RecommendedAction(
            action="upgrade",
            label="Upgrade subscription",
            description="Get full access to all features",
            priority="high",
        ))

    if state.can_manage_subscription:
        actions.append(RecommendedAction(
            action="manage",
            label="Manage subscription",
            description="View billing details and update payment method",
            priority="low",
        ))

    return actions
