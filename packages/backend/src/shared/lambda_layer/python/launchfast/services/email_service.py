"""
Transactional email through Amazon SES, plus the trial email templates.
"""

import os
from datetime import datetime
from typing import Optional
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, ConfigDict

from .aws import get_ses_client

logger = Logger()

DEFAULT_SENDER = "LaunchFast <noreply@launchfast.app>"
DEFAULT_APP_URL = "https://launchfast.app"


class EmailDeliveryError(Exception):
    """Raised when SES rejects or cannot accept a message"""

    pass


class EmailMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    html: str
    text: str


def _app_url() -> str:
    return os.environ.get("APP_BASE_URL", DEFAULT_APP_URL).rstrip("/")


def _wrap_html(heading: str, body: str, cta_label: str, cta_path: str) -> str:
    return (
        "<html><body style=\"font-family: Arial, sans-serif; color: #111827;\">"
        f"<h1 style=\"font-size: 22px;\">{heading}</h1>"
        f"{body}"
        f"<p><a href=\"{_app_url()}{cta_path}\" "
        "style=\"background: #2563eb; color: #ffffff; padding: 10px 18px; "
        f"border-radius: 6px; text-decoration: none;\">{cta_label}</a></p>"
        "<p style=\"font-size: 12px; color: #6b7280;\">LaunchFast - Amazon product research</p>"
        "</body></html>"
    )


def trial_welcome_email(promo_code: str, trial_end_date: datetime) -> EmailMessage:
    end = trial_end_date.strftime("%B %d, %Y")
    body = (
        f"<p>Your promo code <strong>{promo_code}</strong> unlocked full LaunchFast access "
        f"until <strong>{end}</strong>.</p>"
        "<p>Run product research, score markets and export your results.</p>"
    )
    return EmailMessage(
        subject="Your LaunchFast Trial is Active - Start Exploring!",
        html=_wrap_html("Welcome to your LaunchFast trial", body, "Open dashboard", "/dashboard"),
        text=f"Your promo code {promo_code} unlocked full LaunchFast access until {end}. "
        f"Open your dashboard: {_app_url()}/dashboard",
    )


def trial_reminder_email(days_remaining: int, promo_code: str) -> EmailMessage:
    if days_remaining == 1:
        subject = "FINAL NOTICE: Your LaunchFast Trial Expires Tomorrow!"
    else:
        subject = f"Only {days_remaining} Days Left in Your LaunchFast Trial"
    days = "1 day" if days_remaining == 1 else f"{days_remaining} days"
    body = (
        f"<p>Your trial from promo code <strong>{promo_code}</strong> ends in "
        f"<strong>{days}</strong>.</p>"
        "<p>Upgrade to Pro to keep unlimited searches and your saved markets.</p>"
    )
    return EmailMessage(
        subject=subject,
        html=_wrap_html(f"{days} left in your trial", body, "Upgrade to Pro", "/billing"),
        text=f"Your LaunchFast trial ends in {days}. Upgrade to Pro: {_app_url()}/billing",
    )


def trial_expired_email(promo_code: str) -> EmailMessage:
    body = (
        f"<p>The trial from promo code <strong>{promo_code}</strong> has ended.</p>"
        "<p>Your research is saved. Reactivate to pick up where you left off.</p>"
    )
    return EmailMessage(
        subject="Your LaunchFast Trial Has Expired - Reactivate Now",
        html=_wrap_html("Your trial has ended", body, "Reactivate", "/billing"),
        text=f"Your LaunchFast trial has ended. Reactivate: {_app_url()}/billing",
    )


class EmailService:
    def __init__(self, sender: Optional[str] = None):
        self.sender = sender or os.environ.get("TRIAL_EMAIL_SENDER", DEFAULT_SENDER)

    def send(self, to_address: str, message: EmailMessage) -> str:
        """
        Send one email.

        Returns:
            str: SES message id
        """
        try:
            response = get_ses_client().send_email(
                Source=self.sender,
                Destination={"ToAddresses": [to_address]},
                Message={
                    "Subject": {"Data": message.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Html": {"Data": message.html, "Charset": "UTF-8"},
                        "Text": {"Data": message.text, "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send '{message.subject}' to {to_address}: {e}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"Sent '{message.subject}' to {to_address}")
        return response["MessageId"]
