"""
Promo Code Service

Promo codes grant a free trial window. Rows in the promo table:
    PROMO#<code>        / METADATA     code definition and redemption counter
    USER#<user_id>      / REDEMPTION   the user's single redemption
    REDEMPTION#<id>     / EMAIL#<type> trial email log (see trial_service)
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from aws_lambda_powertools import Logger
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from ..models.promo import (
    PromoCode,
    PromoCodeAlreadyRedeemed,
    PromoCodeError,
    PromoCodeExhausted,
    PromoCodeExpired,
    PromoCodeNotFound,
    PromoRedemption,
    RedemptionStatus,
    normalize_code,
)
from .aws import get_ddb_table
from .profile_service import ProfileService, ProfileServiceError

logger = Logger()


class PromoCodeService:
    def __init__(self, table_name: Optional[str] = None, profile_service: Optional[ProfileService] = None):
        self.table_name = table_name or os.environ.get("PROMO_TABLE_NAME", "lf-promo-codes-dev")
        self.profile_service = profile_service or ProfileService()
        self._table = None

    @property
    def table(self):
        """Lazy load DynamoDB table."""
        if self._table is None:
            self._table = get_ddb_table(self.table_name)
        return self._table

    @staticmethod
    def _code_key(code: str) -> Dict[str, str]:
        return {"PK": f"PROMO#{normalize_code(code)}", "SK": "METADATA"}

    @staticmethod
    def _redemption_key(user_id: str) -> Dict[str, str]:
        return {"PK": f"USER#{user_id}", "SK": "REDEMPTION"}

    def create_code(
        self,
        code: str,
        trial_days: int,
        description: str = "",
        max_uses: Optional[int] = None,
        expires_at: Optional[datetime] = None,
        is_active: bool = True,
    ) -> PromoCode:
        """Store a new promo code. Codes are unique case-insensitively."""
        promo = PromoCode(
            promo_code_id=str(uuid.uuid4()),
            code=code.strip(),
            description=description,
            trial_days=trial_days,
            max_uses=max_uses,
            expires_at=expires_at,
            is_active=is_active,
        )
        item = {**self._code_key(code), **promo.model_dump(mode="json", exclude_none=True)}
        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise PromoCodeError(f"Promo code {code} already exists") from e
            logger.error(f"Error creating promo code {code}: {e}")
            raise
        logger.info(f"Created promo code {promo.code} ({trial_days} day trial)")
        return promo

    def get_code(self, code: str) -> Optional[PromoCode]:
        try:
            response = self.table.get_item(Key=self._code_key(code))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading promo code {code}: {e}")
            raise
        item = response.get("Item")
        return PromoCode(**item) if item else None

    def validate_code(self, code: str, now: Optional[datetime] = None) -> PromoCode:
        """
        Check that a code can be redeemed right now.

        Raises:
            PromoCodeNotFound: Unknown or inactive code
            PromoCodeExpired: Past its expiry date
            PromoCodeExhausted: Redemption count reached max_uses
        """
        now = now or datetime.now(timezone.utc)
        if not code or not code.strip():
            raise PromoCodeNotFound(code or "")

        promo = self.get_code(code)
        if promo is None or not promo.is_active:
            logger.info(f"Rejected unknown or inactive promo code {code!r}")
            raise PromoCodeNotFound(code)
        if promo.is_expired(now):
            raise PromoCodeExpired(code)
        if promo.is_exhausted():
            raise PromoCodeExhausted(code)
        return promo

    def get_redemption(self, user_id: str) -> Optional[PromoRedemption]:
        try:
            response = self.table.get_item(Key=self._redemption_key(user_id))
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error reading redemption for user {user_id}: {e}")
            raise
        item = response.get("Item")
        return PromoRedemption(**item) if item else None

    def _claim_use(self, promo: PromoCode) -> None:
        """Atomically count one redemption, respecting max_uses"""
        update_kwargs: Dict[str, Any] = {
            "Key": self._code_key(promo.code),
            "UpdateExpression": "SET redemption_count = if_not_exists(redemption_count, :zero) + :one",
            "ExpressionAttributeValues": {":zero": 0, ":one": 1},
        }
        if promo.max_uses is not None:
            update_kwargs["ConditionExpression"] = (
                "attribute_not_exists(redemption_count) OR redemption_count < :max_uses"
            )
            update_kwargs["ExpressionAttributeValues"][":max_uses"] = promo.max_uses
        try:
            self.table.update_item(**update_kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise PromoCodeExhausted(promo.code) from e
            raise

    def _release_use(self, promo: PromoCode) -> None:
        try:
            self.table.update_item(
                Key=self._code_key(promo.code),
                UpdateExpression="SET redemption_count = redemption_count - :one",
                ConditionExpression="redemption_count > :zero",
                ExpressionAttributeValues={":zero": 0, ":one": 1},
            )
        except ClientError as e:
            logger.error(f"Could not release redemption slot for {promo.code}: {e}")

    def redeem_code(self, user_id: str, code: str, now: Optional[datetime] = None) -> PromoRedemption:
        """
        Redeem a promo code for a user and start their trial.

        Each user may redeem one promo code ever.

        Raises:
            PromoCodeError: Any reason the code cannot be redeemed
        """
        now = now or datetime.now(timezone.utc)
        promo = self.validate_code(code, now)

        if self.get_redemption(user_id) is not None:
            raise PromoCodeAlreadyRedeemed(user_id)

        self._claim_use(promo)

        redemption = PromoRedemption(
            redemption_id=str(uuid.uuid4()),
            user_id=user_id,
            promo_code_id=promo.promo_code_id,
            code=promo.code,
            trial_start_date=now,
            trial_end_date=now + timedelta(days=promo.trial_days),
            redeemed_at=now,
        )
        item = {
            **self._redemption_key(user_id),
            **redemption.model_dump(mode="json", exclude_none=True),
        }
        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
        except ClientError as e:
            self._release_use(promo)
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise PromoCodeAlreadyRedeemed(user_id) from e
            logger.error(f"Error storing redemption for user {user_id}: {e}")
            raise

        try:
            self.profile_service.update_trial_status(
                user_id, "active", redemption.trial_start_date, redemption.trial_end_date
            )
        except ProfileServiceError as e:
            # The redemption stands; the profile catches up on the next write
            logger.error(f"Trial started but profile update failed for user {user_id}: {e}")

        logger.info(f"User {user_id} redeemed {promo.code}: trial until {redemption.trial_end_date.isoformat()}")
        return redemption

    def list_active_redemptions(self) -> List[PromoRedemption]:
        """All redemptions whose trial has not been closed"""
        redemptions = []
        scan_kwargs: Dict[str, Any] = {
            "FilterExpression": Attr("SK").eq("REDEMPTION") & Attr("status").eq(RedemptionStatus.ACTIVE.value),
        }
        while True:
            response = self.table.scan(**scan_kwargs)
            redemptions.extend(PromoRedemption(**item) for item in response.get("Items", []))
            if "LastEvaluatedKey" not in response:
                break
            scan_kwargs["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        return redemptions

    def set_redemption_status(self, user_id: str, status: RedemptionStatus) -> None:
        self.table.update_item(
            Key=self._redemption_key(user_id),
            UpdateExpression="SET #status = :status",
            ExpressionAttributeNames={"#status": "status"},
            ExpressionAttributeValues={":status": status.value},
            ConditionExpression="attribute_exists(PK)",
        )
        logger.info(f"Redemption for user {user_id} is now {status.value}")
