"""
Profile Service for user billing and trial fields.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from aws_lambda_powertools import Logger
from botocore.exceptions import BotoCoreError, ClientError

from ..models.subscription import SubscriptionData
from .aws import get_ddb_table

logger = Logger()

BILLING_FIELDS = (
    "subscription_tier",
    "subscription_status",
    "stripe_customer_id",
    "stripe_subscription_id",
    "current_period_end",
    "cancel_at_period_end",
)


class ProfileServiceError(Exception):
    """Raised when the profile store cannot be read or written"""

    pass


class ProfileService:
    """Reads and writes user profile rows (PK=USER#<id>, SK=PROFILE)"""

    def __init__(self, table_name: Optional[str] = None):
        self.table_name = table_name or os.environ.get("PROFILES_TABLE_NAME", "lf-profiles-dev")
        self._table = None

    @property
    def table(self):
        """Lazy load DynamoDB table."""
        if self._table is None:
            self._table = get_ddb_table(self.table_name)
        return self._table

    @staticmethod
    def _key(user_id: str) -> Dict[str, str]:
        return {"PK": f"USER#{user_id}", "SK": "PROFILE"}

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(Key=self._key(user_id))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error getting profile for user {user_id}: {e}")
            raise ProfileServiceError(f"Failed to read profile for {user_id}") from e
        return response.get("Item")

    def get_subscription_data(self, user_id: str) -> Optional[SubscriptionData]:
        """
        Billing fields of a user's profile.

        Returns:
            SubscriptionData, or None when the user has no profile row
        """
        item = self.get_profile(user_id)
        if item is None:
            logger.warning(f"No profile found for user {user_id}")
            return None

        return SubscriptionData(
            subscription_tier=item.get("subscription_tier"),
            subscription_status=item.get("subscription_status"),
            stripe_customer_id=item.get("stripe_customer_id"),
            stripe_subscription_id=item.get("stripe_subscription_id"),
            current_period_end=item.get("current_period_end"),
            cancel_at_period_end=bool(item.get("cancel_at_period_end", False)),
            trial_status=item.get("trial_status"),
            trial_end_date=item.get("trial_end_date"),
        )

    def put_profile(
        self,
        user_id: str,
        email: Optional[str] = None,
        subscription: Optional[SubscriptionData] = None,
    ) -> Dict[str, Any]:
        """Create or replace a profile row"""
        now = datetime.now(timezone.utc).isoformat()
        subscription = subscription or SubscriptionData(subscription_tier="expired")

        item: Dict[str, Any] = {
            **self._key(user_id),
            "user_id": user_id,
            "created_at": now,
            "updated_at": now,
        }
        if email:
            item["email"] = email
        for field, value in subscription.model_dump().items():
            if value is not None:
                item[field] = value

        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error writing profile for user {user_id}: {e}")
            raise ProfileServiceError(f"Failed to write profile for {user_id}") from e

        logger.info(f"Saved profile for user {user_id}")
        return item

    def update_trial_status(
        self,
        user_id: str,
        trial_status: str,
        trial_start_date: Optional[datetime] = None,
        trial_end_date: Optional[datetime] = None,
    ) -> None:
        """Record trial status on the profile. A missing profile is left alone."""
        update_expression = "SET trial_status = :status, updated_at = :timestamp"
        expression_values: Dict[str, Any] = {
            ":status": trial_status,
            ":timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if trial_start_date:
            update_expression += ", trial_start_date = :start"
            expression_values[":start"] = trial_start_date.isoformat()
        if trial_end_date:
            update_expression += ", trial_end_date = :end"
            expression_values[":end"] = trial_end_date.isoformat()

        try:
            self.table.update_item(
                Key=self._key(user_id),
                UpdateExpression=update_expression,
                ExpressionAttributeValues=expression_values,
                ConditionExpression="attribute_exists(PK)",
            )
            logger.info(f"Updated trial status for user {user_id} to {trial_status}")
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.warning(f"No profile to update trial status for user {user_id}")
                return
            logger.error(f"Error updating trial status for user {user_id}: {e}")
            raise ProfileServiceError(f"Failed to update trial status for {user_id}") from e

    def expire_trial(self, user_id: str) -> None:
        """
        Downgrade a user whose trial ended without conversion.

        Profiles with a Stripe subscription keep their Stripe-managed tier and
        only get their trial marked as expired.
        """
        try:
            self.table.update_item(
                Key=self._key(user_id),
                UpdateExpression=(
                    "SET subscription_tier = :tier, subscription_status = :status, "
                    "trial_status = :trial, updated_at = :timestamp"
                ),
                ExpressionAttributeValues={
                    ":tier": "expired",
                    ":status": "inactive",
                    ":trial": "expired",
                    ":timestamp": datetime.now(timezone.utc).isoformat(),
                },
                ConditionExpression="attribute_exists(PK) AND attribute_not_exists(stripe_subscription_id)",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                logger.info(f"Trial of user {user_id} ended, billing left to Stripe")
                self.update_trial_status(user_id, "expired")
                return
            logger.error(f"Error expiring trial for user {user_id}: {e}")
            raise ProfileServiceError(f"Failed to expire trial for {user_id}") from e
        except BotoCoreError as e:
            logger.error(f"Error expiring trial for user {user_id}: {e}")
            raise ProfileServiceError(f"Failed to expire trial for {user_id}") from e

        logger.info(f"Expired trial for user {user_id}")
