"""
Authentication utilities for extracting user information from API Gateway events.
"""
from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger

logger = Logger()


def get_user_claims(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Cognito claims that API Gateway places in requestContext.authorizer.claims
    once it has validated the JWT.

    Args:
        event: API Gateway event dictionary

    Returns:
        Dictionary of JWT claims, empty when the request was not authorized
    """
    request_context = event.get("requestContext") or {}
    authorizer = request_context.get("authorizer") or {}
    return authorizer.get("claims") or {}


def extract_user_id_from_event(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract user_id (the 'sub' claim) from an API Gateway event.

    Returns:
        User ID, or None if not found
    """
    user_id = get_user_claims(event).get("sub")
    if not user_id:
        logger.warning("No user_id found in JWT claims")
        return None
    return user_id


def extract_user_email_from_event(event: Dict[str, Any]) -> Optional[str]:
    email = get_user_claims(event).get("email")
    if not email:
        logger.debug("No email found in JWT claims")
        return None
    return email


def is_authorized_cron_request(event: Dict[str, Any], cron_secret: Optional[str]) -> bool:
    """
    Check the bearer token of a scheduler call made through API Gateway.

    EventBridge invocations carry no headers and are trusted.
    """
    if "headers" not in event and "httpMethod" not in event:
        return True
    if not cron_secret:
        logger.error("CRON_SECRET is not configured, rejecting HTTP trigger")
        return False
    headers = {k.lower(): v for k, v in (event.get("headers") or {}).items()}
    return headers.get("authorization") == f"Bearer {cron_secret}"
