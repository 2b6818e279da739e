"""
Trial Service

Derives trial status from a promo redemption and runs the scheduled trial
email job (welcome, countdown reminders, expiry notice).
"""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError
from pydantic import BaseModel, Field

from ..constants.subscription_tiers import (
    TIER_PRO,
    TIER_UNLIMITED,
    TRIAL_REMINDER_DAYS,
    TRIAL_WELCOME_WINDOW_HOURS,
)
from ..models.promo import PromoRedemption, RedemptionStatus, TrialInfo, TrialUrgency
from .email_service import (
    EmailDeliveryError,
    EmailService,
    trial_expired_email,
    trial_reminder_email,
    trial_welcome_email,
)
from .profile_service import ProfileService, ProfileServiceError
from .promo_code_service import PromoCodeService
from .subscription_state import has_active_subscription

logger = Logger()

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


def _urgency(days_remaining: int) -> TrialUrgency:
    if days_remaining <= 1:
        return TrialUrgency.CRITICAL
    if days_remaining <= 2:
        return TrialUrgency.HIGH
    if days_remaining <= 3:
        return TrialUrgency.MEDIUM
    return TrialUrgency.LOW


def get_trial_info(redemption: Optional[PromoRedemption], now: Optional[datetime] = None) -> TrialInfo:
    """Trial status for a user's redemption (None when they never redeemed)"""
    if redemption is None:
        return TrialInfo()

    now = now or datetime.now(timezone.utc)
    common = {
        "trial_end_date": redemption.trial_end_date,
        "promo_code_used": redemption.code or None,
        "redemption_id": redemption.redemption_id,
    }

    if redemption.status == RedemptionStatus.CONVERTED:
        return TrialInfo(status="converted", **common)

    seconds_remaining = (redemption.trial_end_date - now).total_seconds()
    if redemption.status != RedemptionStatus.ACTIVE or seconds_remaining <= 0:
        return TrialInfo(status="expired", urgency_level=TrialUrgency.CRITICAL, **common)

    days_remaining = math.ceil(seconds_remaining / SECONDS_PER_DAY)
    return TrialInfo(
        is_active=True,
        days_remaining=days_remaining,
        hours_remaining=math.ceil(seconds_remaining / SECONDS_PER_HOUR),
        status="active",
        urgency_level=_urgency(days_remaining),
        **common,
    )


def get_trial_urgency_message(info: TrialInfo) -> str:
    if not info.is_active:
        return "Your trial has ended"
    if info.days_remaining <= 0:
        return f"Only {info.hours_remaining} hours remaining!"
    if info.days_remaining == 1:
        return "Your trial expires tomorrow!"
    if info.days_remaining <= 3:
        return f"Don't lose access - only {info.days_remaining} days left"
    return f"{info.days_remaining} days remaining in your free trial"


class TrialReminderResults(BaseModel):
    welcome: int = 0
    reminder: int = 0
    expired: int = 0
    converted: int = 0
    errors: List[str] = Field(default_factory=list)


class TrialReminderJob:
    """Sends each trial email at most once per redemption"""

    def __init__(
        self,
        promo_service: Optional[PromoCodeService] = None,
        profile_service: Optional[ProfileService] = None,
        email_service: Optional[EmailService] = None,
    ):
        self.profile_service = profile_service or ProfileService()
        self.promo_service = promo_service or PromoCodeService(profile_service=self.profile_service)
        self.email_service = email_service or EmailService()

    @staticmethod
    def _email_log_key(redemption_id: str, email_type: str) -> Dict[str, str]:
        return {"PK": f"REDEMPTION#{redemption_id}", "SK": f"EMAIL#{email_type}"}

    def _claim_email(self, redemption: PromoRedemption, email_type: str, now: datetime) -> bool:
        """Record the email as sent. False when it already was."""
        try:
            self.promo_service.table.put_item(
                Item={
                    **self._email_log_key(redemption.redemption_id, email_type),
                    "redemption_id": redemption.redemption_id,
                    "user_id": redemption.user_id,
                    "email_type": email_type,
                    "sent_at": now.isoformat(),
                },
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            raise
        return True

    def _release_email(self, redemption: PromoRedemption, email_type: str) -> None:
        try:
            self.promo_service.table.delete_item(Key=self._email_log_key(redemption.redemption_id, email_type))
        except (ClientError, BotoCoreError) as e:
            logger.error(
                f"Could not release {email_type} email claim for trial {redemption.redemption_id}, "
                f"it will not be retried: {e}"
            )

    def _send_once(self, redemption: PromoRedemption, email_type: str, to_address: str, message, now) -> bool:
        if not self._claim_email(redemption, email_type, now):
            return False
        try:
            self.email_service.send(to_address, message)
        except EmailDeliveryError:
            # Let the next run retry this email
            self._release_email(redemption, email_type)
            raise
        return True

    def _is_paying(self, profile: Dict[str, Any]) -> bool:
        return profile.get("subscription_tier") in (TIER_PRO, TIER_UNLIMITED) and has_active_subscription(
            profile.get("subscription_status")
        )

    def _process(self, redemption: PromoRedemption, now: datetime, results: TrialReminderResults) -> None:
        profile = self.profile_service.get_profile(redemption.user_id)
        if not profile:
            results.errors.append(f"User profile not found for trial {redemption.redemption_id}")
            return
        email = profile.get("email")
        if not email:
            results.errors.append(f"No email address for trial {redemption.redemption_id}")
            return

        if self._is_paying(profile):
            self.promo_service.set_redemption_status(redemption.user_id, RedemptionStatus.CONVERTED)
            results.converted += 1
            return

        seconds_remaining = (redemption.trial_end_date - now).total_seconds()
        days_remaining = math.ceil(seconds_remaining / SECONDS_PER_DAY)
        hours_from_start = (now - redemption.trial_start_date).total_seconds() / SECONDS_PER_HOUR

        if 0 <= hours_from_start <= TRIAL_WELCOME_WINDOW_HOURS:
            message = trial_welcome_email(redemption.code, redemption.trial_end_date)
            if self._send_once(redemption, "welcome", email, message, now):
                results.welcome += 1

        if days_remaining <= 0:
            if self._send_once(redemption, "expired", email, trial_expired_email(redemption.code), now):
                results.expired += 1
            self.promo_service.set_redemption_status(redemption.user_id, RedemptionStatus.EXPIRED)
            self.profile_service.expire_trial(redemption.user_id)
            return

        if days_remaining in TRIAL_REMINDER_DAYS:
            message = trial_reminder_email(days_remaining, redemption.code)
            if self._send_once(redemption, f"reminder_day_{days_remaining}", email, message, now):
                results.reminder += 1

    def run(self, now: Optional[datetime] = None) -> TrialReminderResults:
        """
        Process every active trial.

        A failure on one trial is recorded in the results and does not stop
        the others.
        """
        now = now or datetime.now(timezone.utc)
        results = TrialReminderResults()
        redemptions = self.promo_service.list_active_redemptions()
        logger.info(f"Processing {len(redemptions)} active trials")

        for redemption in redemptions:
            try:
                self._process(redemption, now, results)
            except (ClientError, EmailDeliveryError, ProfileServiceError) as e:
                logger.error(f"Error processing trial {redemption.redemption_id}: {e}")
                results.errors.append(f"Error processing trial {redemption.redemption_id}: {e}")

        logger.info(
            f"Trial email job completed: welcome={results.welcome}, reminder={results.reminder}, "
            f"expired={results.expired}, converted={results.converted}, errors={len(results.errors)}"
        )
        return results
