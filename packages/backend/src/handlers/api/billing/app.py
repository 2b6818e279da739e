import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import InternalServerError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from typing import Any, Dict

from launchfast.constants.subscription_tiers import CURRENCY, CURRENCY_SYMBOL, SUBSCRIPTION_PLANS, TIER_FREE
from launchfast.services.profile_service import ProfileService, ProfileServiceError
from launchfast.services.subscription_state import (
    apply_active_trial,
    get_recommended_actions,
    get_subscription_plan,
    get_subscription_state,
    get_subscription_status_message,
)
from launchfast.utils.auth import extract_user_id_from_event

# Initialize the logger
logger = Logger()

# Retrieve environment variables
PROFILES_TABLE_NAME = os.environ.get("PROFILES_TABLE_NAME", "lf-profiles-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

app = APIGatewayRestResolver(cors=cors_config)


@app.get("/subscription/state")
def get_state() -> Dict[str, Any]:
    """
    Resolved subscription state of the caller, with the billing page message
    and recommended actions.
    """
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        raise UnauthorizedError("Authentication required")

    try:
        subscription = apply_active_trial(ProfileService(PROFILES_TABLE_NAME).get_subscription_data(user_id))
    except ProfileServiceError as exc:
        logger.error(f"Error loading profile for {user_id}: {exc}")
        raise InternalServerError("Failed to retrieve subscription information")

    state = get_subscription_state(subscription)
    return {
        "state": state.model_dump(mode="json"),
        "message": get_subscription_status_message(state),
        "recommended_actions": [action.model_dump() for action in get_recommended_actions(state)],
    }


@app.get("/subscription/plans")
def get_plans() -> Dict[str, Any]:
    """
    Purchasable and special plans with their limits
    """
    plans = {}
    for plan_id in SUBSCRIPTION_PLANS:
        if plan_id == TIER_FREE:
            continue
        plans[plan_id] = get_subscription_plan(plan_id).model_dump(mode="json")
    return {
        "plans": plans,
        "currency": CURRENCY,
        "currency_symbol": CURRENCY_SYMBOL,
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
