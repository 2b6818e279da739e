import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.api_gateway import CORSConfig
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, UnauthorizedError
from aws_lambda_powertools.utilities.typing import LambdaContext
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Dict

from launchfast.models.promo import PromoCodeError
from launchfast.services.profile_service import ProfileService
from launchfast.services.promo_code_service import PromoCodeService
from launchfast.services.trial_service import get_trial_info, get_trial_urgency_message
from launchfast.utils.auth import extract_user_id_from_event

# Initialize the logger
logger = Logger()

# Retrieve environment variables
PROFILES_TABLE_NAME = os.environ.get("PROFILES_TABLE_NAME", "lf-profiles-dev")
PROMO_TABLE_NAME = os.environ.get("PROMO_TABLE_NAME", "lf-promo-codes-dev")

# Configure CORS
cors_config = CORSConfig(
    allow_origin="*",  # In production, specify your actual domain
)

app = APIGatewayRestResolver(cors=cors_config)


class PromoCodeRequest(BaseModel):
    code: str = Field(min_length=1)


def _promo_service() -> PromoCodeService:
    return PromoCodeService(PROMO_TABLE_NAME, profile_service=ProfileService(PROFILES_TABLE_NAME))


def _parse_code() -> str:
    try:
        return PromoCodeRequest(**(app.current_event.json_body or {})).code
    except (ValidationError, TypeError, ValueError) as exc:
        logger.error(f"Validation error: {str(exc)}")
        raise BadRequestError("Promo code is required")


@app.post("/promo-codes/validate")
def validate_promo_code() -> Dict[str, Any]:
    """
    Check a promo code without redeeming it.
    Expected body: {"code": "LAUNCH30"}
    """
    code = _parse_code()
    try:
        promo = _promo_service().validate_code(code)
    except PromoCodeError as exc:
        return {"valid": False, "error": str(exc)}

    return {
        "valid": True,
        "promoCode": {
            "code": promo.code,
            "description": promo.description,
            "trialDays": promo.trial_days,
        },
    }


@app.post("/promo-codes/redeem")
def redeem_promo_code() -> Dict[str, Any]:
    """
    Redeem a promo code for the caller and start the trial
    """
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        raise UnauthorizedError("Authentication required")
    code = _parse_code()

    try:
        redemption = _promo_service().redeem_code(user_id, code)
    except PromoCodeError as exc:
        logger.info(f"Promo code redemption rejected for {user_id}: {exc}")
        raise BadRequestError(str(exc))

    return {
        "success": True,
        "message": "Promo code redeemed successfully",
        "trial": {
            "startDate": redemption.trial_start_date.isoformat(),
            "endDate": redemption.trial_end_date.isoformat(),
            "trialDays": (redemption.trial_end_date - redemption.trial_start_date).days,
        },
    }


@app.get("/trial")
def get_trial() -> Dict[str, Any]:
    """
    Trial status of the caller
    """
    user_id = extract_user_id_from_event(app.current_event.raw_event)
    if not user_id:
        raise UnauthorizedError("Authentication required")

    info = get_trial_info(_promo_service().get_redemption(user_id))
    return {
        "trial": info.model_dump(mode="json"),
        "message": get_trial_urgency_message(info),
    }


def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda function handler.
    """
    return app.resolve(event, context)
