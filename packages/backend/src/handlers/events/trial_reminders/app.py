import os
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext
from botocore.exceptions import BotoCoreError, ClientError
from typing import Any, Dict

from launchfast.services.email_service import EmailService
from launchfast.services.profile_service import ProfileService
from launchfast.services.promo_code_service import PromoCodeService
from launchfast.services.trial_service import TrialReminderJob
from launchfast.utils.auth import is_authorized_cron_request
from launchfast.utils.usage_gate import create_api_response

# Initialize the logger
logger = Logger()

# Environment variables
PROFILES_TABLE_NAME = os.environ.get("PROFILES_TABLE_NAME", "lf-profiles-dev")
PROMO_TABLE_NAME = os.environ.get("PROMO_TABLE_NAME", "lf-promo-codes-dev")


def _is_http_trigger(event: Dict[str, Any]) -> bool:
    return "httpMethod" in event or "headers" in event


@logger.inject_lambda_context
def handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Scheduled trial email job.

    Runs from an EventBridge schedule, or over HTTP with a
    "Authorization: Bearer <CRON_SECRET>" header.
    """
    http = _is_http_trigger(event)
    if not is_authorized_cron_request(event, os.environ.get("CRON_SECRET")):
        logger.warning("Rejected unauthorized trial reminder trigger")
        return create_api_response(401, {"error": "Unauthorized"})

    profile_service = ProfileService(PROFILES_TABLE_NAME)
    job = TrialReminderJob(
        promo_service=PromoCodeService(PROMO_TABLE_NAME, profile_service=profile_service),
        profile_service=profile_service,
        email_service=EmailService(),
    )

    try:
        results = job.run()
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Trial reminder job failed: {e}")
        if http:
            return create_api_response(500, {"error": "Failed to fetch trials"})
        raise

    body = {
        "success": True,
        "message": "Trial reminder emails processed",
        "results": results.model_dump(),
    }
    return create_api_response(200, body) if http else body
