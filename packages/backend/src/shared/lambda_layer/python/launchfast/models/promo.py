from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class PromoCodeError(Exception):
    """Base exception for promo code validation and redemption"""

    pass


class PromoCodeNotFound(PromoCodeError):
    def __init__(self, code: str):
        super().__init__("Invalid or expired promo code")
        self.code = code


class PromoCodeExpired(PromoCodeError):
    def __init__(self, code: str):
        super().__init__("Promo code has expired")
        self.code = code


class PromoCodeExhausted(PromoCodeError):
    def __init__(self, code: str):
        super().__init__("Promo code usage limit reached")
        self.code = code


class PromoCodeAlreadyRedeemed(PromoCodeError):
    def __init__(self, user_id: str):
        super().__init__("You have already redeemed a promo code")
        self.user_id = user_id


def normalize_code(code: str) -> str:
    """Promo codes match case-insensitively"""
    return code.strip().lower()


def ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


class RedemptionStatus(str, Enum):
    ACTIVE = "active"
    CONVERTED = "converted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class TrialUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PromoCode(BaseModel):
    promo_code_id: str
    code: str
    description: str = ""
    trial_days: int = Field(ge=1)
    max_uses: Optional[int] = Field(default=None, ge=1)
    redemption_count: int = Field(default=0, ge=0)
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @field_validator("expires_at")
    @classmethod
    def expires_at_utc(cls, v):
        return ensure_utc(v) if v is not None else v

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.redemption_count >= self.max_uses


class PromoRedemption(BaseModel):
    redemption_id: str
    user_id: str
    promo_code_id: str
    code: str = ""
    trial_start_date: datetime
    trial_end_date: datetime
    status: RedemptionStatus = RedemptionStatus.ACTIVE
    stripe_subscription_id: Optional[str] = None
    redeemed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("trial_start_date", "trial_end_date", "redeemed_at")
    @classmethod
    def dates_utc(cls, v):
        return ensure_utc(v)


class TrialInfo(BaseModel):
    is_active: bool = False
    days_remaining: int = 0
    hours_remaining: int = 0
    trial_end_date: Optional[datetime] = None
    status: str = Field(default="none", description="active | expired | converted | none")
    urgency_level: TrialUrgency = TrialUrgency.LOW
    promo_code_used: Optional[str] = None
    redemption_id: Optional[str] = None
