from datetime import datetime
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, computed_field
from typing import List, Optional


class SubscriptionTier(str, Enum):
    """Normalized subscription tier"""
    EXPIRED = "expired"
    UNLIMITED = "unlimited"
    PRO = "pro"


class PlanLimits(BaseModel):
    """Feature limits for a plan. monthly_searches of -1 means unlimited."""
    model_config = ConfigDict(frozen=True)

    monthly_searches: int = Field(description="Searches allowed per calendar month")
    csv_exports: bool = Field(default=False, description="Can export CSV data")
    batch_operations: bool = Field(default=False, description="Can run batch operations")
    api_access: bool = Field(default=False, description="Can call the public API")


class SubscriptionPlan(BaseModel):
    """Static plan definition"""
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    price_cents: int = 0
    stripe_price_id: Optional[str] = None
    features: tuple[str, ...] = ()
    limits: PlanLimits


class SubscriptionData(BaseModel):
    """Raw billing fields as stored on a user profile row"""
    subscription_tier: Optional[str] = Field(default=None)
    subscription_status: Optional[str] = Field(default=None)
    stripe_customer_id: Optional[str] = Field(default=None)
    stripe_subscription_id: Optional[str] = Field(default=None)
    current_period_end: Optional[str] = Field(
        default=None, description="ISO-8601 end of the current billing period"
    )
    cancel_at_period_end: bool = Field(default=False)
    trial_status: Optional[str] = Field(default=None, description="Promo trial status: active | expired")
    trial_end_date: Optional[str] = Field(default=None, description="ISO-8601 end of the promo trial")


class SubscriptionState(BaseModel):
    """Derived subscription state, rebuilt from the latest profile row on every request"""
    model_config = ConfigDict(frozen=True)

    # Core status
    tier: SubscriptionTier
    status: Optional[str]
    is_active: bool
    is_valid: bool

    # Plan details
    plan: SubscriptionPlan

    # Capabilities
    can_access_features: bool
    can_manage_subscription: bool
    has_unlimited_access: bool

    # Billing info
    current_period_end: Optional[datetime]
    will_cancel_at_period_end: bool
    has_stripe_customer: bool

    # Error states
    errors: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def has_errors(self) -> bool:
        return len(self.errors) > 0


class RecommendedAction(BaseModel):
    action: str = Field(description="upgrade | manage | contact_support | retry")
    label: str
    description: str
    priority: str = Field(description="high | medium | low")
