"""
Centralized subscription tier configuration constants.

This module defines all subscription plans, tier aliases and usage limits in
one place. A limit of -1 means unlimited.
"""

from types import MappingProxyType

# Canonical tiers
TIER_EXPIRED = "expired"
TIER_UNLIMITED = "unlimited"
TIER_PRO = "pro"
TIER_FREE = "free"  # Usage limiter only, never produced by the state resolver

# Legacy tier strings found in older profile rows
TIER_ALIASES = MappingProxyType({
    "expired": TIER_EXPIRED,
    "inactive": TIER_EXPIRED,
    "cancelled": TIER_EXPIRED,
    "unlimited": TIER_UNLIMITED,
    "unlimited_user": TIER_UNLIMITED,
    "special": TIER_UNLIMITED,
    "pro": TIER_PRO,
    "premium": TIER_PRO,
    "paid": TIER_PRO,
})

# Stripe statuses that grant paid access
ACTIVE_STATUSES = frozenset({"active", "trialing"})

# Billing status given to promo trial users
TRIAL_STATUS = "trialing"

# Free Tier Configuration
FREE_MONTHLY_SEARCHES = 5

# Pro Tier Configuration
PRO_MONTHLY_SEARCHES = -1  # Unlimited
PRO_PRICE_CENTS = 5000
PRO_STRIPE_PRICE_ID = "price_1RnAMaDWe1hjENea37Yg5myP"

# Unlimited Tier Configuration
UNLIMITED_MONTHLY_SEARCHES = -1  # Unlimited

# Expired Tier Configuration
EXPIRED_MONTHLY_SEARCHES = 0  # Read-only access

# Pricing Configuration
CURRENCY = "USD"
CURRENCY_SYMBOL = "$"

# Plan definitions, consumed by launchfast.models.subscription.SubscriptionPlan
SUBSCRIPTION_PLANS = MappingProxyType({
    TIER_EXPIRED: {
        "name": "Expired Plan",
        "description": "Subscription expired - read-only access",
        "price_cents": 0,
        "stripe_price_id": None,
        "features": (
            "View saved data only",
            "No new searches",
            "No exports",
        ),
        "limits": {
            "monthly_searches": EXPIRED_MONTHLY_SEARCHES,
            "csv_exports": False,
            "batch_operations": False,
            "api_access": False,
        },
    },
    TIER_FREE: {
        "name": "Free",
        "description": "Try LaunchFast with a handful of searches each month",
        "price_cents": 0,
        "stripe_price_id": None,
        "features": (
            f"{FREE_MONTHLY_SEARCHES} product searches per month",
            "View saved data",
        ),
        "limits": {
            "monthly_searches": FREE_MONTHLY_SEARCHES,
            "csv_exports": False,
            "batch_operations": False,
            "api_access": False,
        },
    },
    TIER_UNLIMITED: {
        "name": "Unlimited User - You're Special!",
        "description": "Full unlimited access with special privileges",
        "price_cents": 0,
        "stripe_price_id": None,
        "features": (
            "Unlimited product searches",
            "Unlimited CSV exports",
            "Advanced market analytics",
            "Risk assessment tools",
            "Keyword intelligence",
            "Batch operations",
            "Full API access",
            "VIP priority support",
            "Early access to new features",
        ),
        "limits": {
            "monthly_searches": UNLIMITED_MONTHLY_SEARCHES,
            "csv_exports": True,
            "batch_operations": True,
            "api_access": True,
        },
    },
    TIER_PRO: {
        "name": "LaunchFast Pro",
        "description": "Unlimited access for serious Amazon sellers",
        "price_cents": PRO_PRICE_CENTS,
        "stripe_price_id": PRO_STRIPE_PRICE_ID,
        "features": (
            "Unlimited product searches",
            "Unlimited CSV exports",
            "Advanced market analytics",
            "Risk assessment tools",
            "Keyword intelligence",
            "Batch operations",
            "API access",
            "Priority support",
        ),
        "limits": {
            "monthly_searches": PRO_MONTHLY_SEARCHES,
            "csv_exports": True,
            "batch_operations": True,
            "api_access": True,
        },
    },
})

# Tiers that need an active/trialing Stripe status to be used
TIERS_REQUIRING_STATUS = frozenset({TIER_PRO})

# Trial configuration
TRIAL_WELCOME_WINDOW_HOURS = 2
TRIAL_REMINDER_DAYS = (5, 3, 1)
