import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import (
    BadRequestError,
    InternalServerError,
    UnauthorizedError,
)
from aws_lambda_powertools.utilities.typing import LambdaContext
from datetime import datetime, timezone
from pydantic import BaseModel, ValidationError
from typing import Any, Dict, Optional

from launchfast.models.subscription import SubscriptionData
from launchfast.models.usage import UsageAction
from launchfast.services.profile_service import ProfileService, ProfileServiceError
from launchfast.services.subscription_state import apply_active_trial
from launchfast.services.usage_service import UsageService, UsageTrackingError
from launchfast.utils.auth import extract_user_id_from_event
from launchfast.utils.usage_gate import subscription_denial

# Initialize the logger
logger = Logger()

# Retrieve environment variables
PROFILES_TABLE_NAME = os.environ.get("PROFILES_TABLE_NAME", "lf-profiles-dev")
USAGE_TABLE_NAME = os.environ.get("USAGE_TABLE_NAME", "lf-usage-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

app = APIGatewayRestResolver(cors=cors_config)


class UsageCheckRequest(BaseModel):
    action: UsageAction = UsageAction.SEARCH
    increment: bool = False


def _require_user() -> str:
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        raise UnauthorizedError("Authentication required")
    return user_id


def _load_subscription(user_id: str) -> Optional[SubscriptionData]:
    try:
        return apply_active_trial(ProfileService(PROFILES_TABLE_NAME).get_subscription_data(user_id))
    except ProfileServiceError as exc:
        logger.error(f"Error loading profile for {user_id}: {exc}")
        raise InternalServerError("Failed to check usage")


@app.post("/usage/check")
def check_usage() -> Dict[str, Any]:
    """
    Check whether the caller may perform an action this month.
    Expected body: {"action": "search|csv_export|api_call", "increment": false}
    """
    user_id = _require_user()
    try:
        request = UsageCheckRequest(**(app.current_event.json_body or {}))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError(f"Invalid request: {str(exc)}")

    subscription = _load_subscription(user_id)
    tier = subscription.subscription_tier if subscription else None
    status = subscription.subscription_status if subscription else None
    denial = subscription_denial(subscription, datetime.now(timezone.utc))
    try:
        result = UsageService(USAGE_TABLE_NAME).check_usage(
            user_id, tier, status, request.action, increment=request.increment and not denial
        )
    except UsageTrackingError as exc:
        logger.error(f"Error checking usage for {user_id}: {exc}")
        raise InternalServerError("Failed to check usage")

    decision = result.decision
    if denial:
        decision = decision.model_copy(update={"allow_action": False, "reason": denial, "upgrade_required": True})
    return {
        "allowAction": decision.allow_action,
        "action": decision.action.value,
        "subscriptionTier": decision.tier,
        "subscriptionStatus": decision.status,
        "currentUsage": decision.current_count,
        "limit": decision.limit,
        "remaining": decision.remaining,
        "reason": decision.reason,
        "upgradeRequired": decision.upgrade_required,
        "incremented": result.incremented,
    }


@app.get("/usage/current")
def get_current_usage() -> Dict[str, Any]:
    """
    This month's search usage for the dashboard header
    """
    user_id = _require_user()
    subscription = _load_subscription(user_id)
    tier = subscription.subscription_tier if subscription else None
    try:
        return UsageService(USAGE_TABLE_NAME).get_current_usage_summary(user_id, tier)
    except UsageTrackingError as exc:
        logger.error(f"Error reading usage for {user_id}: {exc}")
        raise InternalServerError("Failed to retrieve usage")


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
