"""
Usage gate for metered LaunchFast endpoints.

Reserves one use of the caller's monthly allowance before the handler runs
and gives it back when the handler does not return 200.
"""

import json
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional, Union
from aws_lambda_powertools import Logger

from ..constants.subscription_tiers import TIER_FREE
from ..models.subscription import SubscriptionData, SubscriptionTier
from ..models.usage import UsageAction, UsageDecision
from ..services.profile_service import ProfileService, ProfileServiceError
from ..services.subscription_state import apply_active_trial, get_subscription_state
from ..services.usage_service import UsageService, UsageTrackingError, resolve_usage_tier
from .auth import extract_user_id_from_event

logger = Logger()

PAID_TIERS = (SubscriptionTier.PRO, SubscriptionTier.UNLIMITED)
UPGRADE_URL = "/billing"


def create_api_response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    """
    API Gateway proxy response with the same CORS headers as the resolvers.
    """
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": "Content-Type,Authorization",
            "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
        },
        "body": json.dumps(body, default=str),
    }


def subscription_denial(subscription: Optional[SubscriptionData], now: datetime) -> Optional[str]:
    """
    Reason to refuse a caller whose subscription state grants no access.

    Free plan users (no profile, no tier or "free") have no billing state to
    resolve and are only held to their usage allowance.
    """
    if subscription is None or resolve_usage_tier(subscription.subscription_tier) == TIER_FREE:
        return None

    state = get_subscription_state(subscription, now)
    if state.has_errors:
        return state.errors[0]
    if state.tier in PAID_TIERS and not state.can_access_features:
        return "Subscription is not active"
    return None


def _limit_response(decision: UsageDecision) -> Dict[str, Any]:
    return create_api_response(429, {
        "error": "Usage limit reached",
        "message": decision.reason,
        "usage": decision.model_dump(mode="json"),
        "upgrade_url": UPGRADE_URL if decision.upgrade_required else None,
    })


def _release(usage: UsageService, user_id: str, action: UsageAction, now: datetime) -> None:
    try:
        usage.release_usage(user_id, action, now)
    except UsageTrackingError as e:
        logger.error(f"Could not release {action.value} reserved for user {user_id}: {e}")


def usage_gate(
    action: Union[UsageAction, str],
    profile_service: Optional[ProfileService] = None,
    usage_service: Optional[UsageService] = None,
):
    """
    Decorator enforcing subscription access and the monthly usage limit on a
    Lambda handler.

    Usage:
        @usage_gate(UsageAction.SEARCH)
        def handler(event, context):
            ...

    Invalid or inactive paid subscriptions get a 403, exhausted allowances a
    429, storage failures a 503. The handler only runs once a use has been
    recorded, so concurrent calls cannot go past the cap.
    """
    action = UsageAction(action)

    def decorator(handler_func: Callable) -> Callable:
        @wraps(handler_func)
        def wrapper(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
            user_id = extract_user_id_from_event(event)
            if not user_id:
                return create_api_response(401, {"message": "Authentication required"})

            profiles = profile_service or ProfileService()
            usage = usage_service or UsageService()
            now = datetime.now(timezone.utc)

            try:
                subscription = apply_active_trial(profiles.get_subscription_data(user_id), now)
            except ProfileServiceError as e:
                logger.error(f"Usage gate could not load the profile of user {user_id}: {e}")
                return create_api_response(503, {"message": "Usage service unavailable"})

            denial = subscription_denial(subscription, now)
            if denial:
                logger.warning(f"Subscription denies {action.value} for user {user_id}: {denial}")
                return create_api_response(403, {
                    "error": "Subscription required",
                    "message": denial,
                    "upgrade_url": UPGRADE_URL,
                })

            tier = subscription.subscription_tier if subscription else None
            status = subscription.subscription_status if subscription else None
            try:
                reservation = usage.check_usage(user_id, tier, status, action, increment=True, now=now)
            except UsageTrackingError as e:
                logger.error(f"Usage gate could not record {action.value} for user {user_id}: {e}")
                return create_api_response(503, {"message": "Usage service unavailable"})

            if not reservation.incremented:
                logger.warning(f"Usage limit hit for user {user_id}: {reservation.decision.reason}")
                return _limit_response(reservation.decision)

            try:
                result = handler_func(event, context)
            except Exception:
                _release(usage, user_id, action, now)
                raise

            if not (isinstance(result, dict) and result.get("statusCode") == 200):
                _release(usage, user_id, action, now)
            return result

        return wrapper

    return decorator
