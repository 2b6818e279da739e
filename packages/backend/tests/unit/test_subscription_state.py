from datetime import datetime, timedelta, timezone

import pytest

from launchfast.models.subscription import SubscriptionData, SubscriptionTier
from launchfast.services.subscription_state import (
    apply_active_trial,
    get_recommended_actions,
    get_subscription_plan,
    get_subscription_state,
    get_subscription_status_message,
    has_unlimited_searches,
    is_feature_allowed,
    normalize_subscription_tier,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)
FUTURE = (NOW + timedelta(days=20)).isoformat()
PAST = (NOW - timedelta(days=3)).isoformat()


@pytest.mark.parametrize("raw", ["expired", "inactive", "cancelled", " Cancelled ", "EXPIRED"])
def test_expired_aliases(raw):
    assert normalize_subscription_tier(raw) == SubscriptionTier.EXPIRED


@pytest.mark.parametrize("raw", ["unlimited", "unlimited_user", "special"])
def test_unlimited_aliases(raw):
    assert normalize_subscription_tier(raw) == SubscriptionTier.UNLIMITED


@pytest.mark.parametrize("raw", ["pro", "premium", "paid"])
def test_pro_aliases(raw):
    assert normalize_subscription_tier(raw) == SubscriptionTier.PRO


@pytest.mark.parametrize("raw", ["gold", "", None, 42])
def test_unknown_tiers_do_not_normalize(raw):
    assert normalize_subscription_tier(raw) is None


def test_no_data_is_invalid_expired_state():
    state = get_subscription_state(None)

    assert state.is_valid is False
    assert state.tier == SubscriptionTier.EXPIRED
    assert state.errors
    assert state.has_errors is True
    assert state.can_access_features is False


@pytest.mark.parametrize("status", [None, "", "active", "trialing", "canceled", "past_due", "incomplete"])
def test_unlimited_always_has_access(status):
    state = get_subscription_state(
        SubscriptionData(subscription_tier="unlimited", subscription_status=status), now=NOW
    )

    assert state.can_access_features is True
    assert state.has_unlimited_access is True
    assert state.is_valid is True


@pytest.mark.parametrize("status", [None, "canceled", "past_due", "unpaid", "incomplete"])
def test_pro_without_active_status_has_no_access(status):
    state = get_subscription_state(
        SubscriptionData(subscription_tier="pro", subscription_status=status), now=NOW
    )

    assert state.can_access_features is False
    assert state.is_valid is False


def test_pro_without_status_reports_error():
    state = get_subscription_state({"subscription_tier": "pro"}, now=NOW)

    assert "Subscription tier indicates active plan but no status provided" in state.errors


@pytest.mark.parametrize("status", ["active", "trialing"])
def test_active_pro_with_future_period(status):
    state = get_subscription_state(
        SubscriptionData(
            subscription_tier="pro",
            subscription_status=status,
            current_period_end=FUTURE,
        ),
        now=NOW,
    )

    assert state.is_valid is True
    assert state.can_access_features is True
    assert state.can_manage_subscription is False
    assert state.current_period_end == NOW + timedelta(days=20)
    assert state.errors == []


def test_manage_subscription_needs_stripe_customer():
    state = get_subscription_state(
        SubscriptionData(
            subscription_tier="pro",
            subscription_status="active",
            stripe_customer_id="cus_123",
            current_period_end=FUTURE,
        ),
        now=NOW,
    )

    assert state.can_manage_subscription is True
    assert state.has_stripe_customer is True


def test_expired_tier_is_valid_but_without_access():
    state = get_subscription_state(
        SubscriptionData(subscription_tier="cancelled", stripe_customer_id="cus_123"), now=NOW
    )

    assert state.is_valid is True
    assert state.can_access_features is False
    assert state.can_manage_subscription is True


def test_active_pro_with_past_period_fails_closed():
    state = get_subscription_state(
        SubscriptionData(
            subscription_tier="pro",
            subscription_status="active",
            current_period_end=PAST,
        ),
        now=NOW,
    )

    assert "Subscription marked as active but period has ended" in state.errors
    # The flag stays as reported
    assert state.is_active is True
    assert state.is_valid is False
    assert state.can_access_features is False


def test_invalid_tier_falls_back_to_expired_plan():
    state = get_subscription_state({"subscription_tier": "gold", "subscription_status": "active"}, now=NOW)

    assert state.tier == SubscriptionTier.EXPIRED
    assert state.plan.name == get_subscription_plan("expired").name
    assert "Invalid subscription tier: gold" in state.errors
    assert state.is_valid is False


def test_missing_tier_is_an_error():
    state = get_subscription_state({"subscription_status": "active"}, now=NOW)

    assert "Missing subscription tier" in state.errors


@pytest.mark.parametrize("period_end", ["not-a-date", "2026-13-45"])
def test_invalid_period_end(period_end):
    state = get_subscription_state(
        {"subscription_tier": "pro", "subscription_status": "active", "current_period_end": period_end},
        now=NOW,
    )

    assert "Invalid current_period_end date" in state.errors
    assert state.current_period_end is None
    assert state.can_access_features is False


def test_zulu_and_naive_period_end_parse_as_utc():
    zulu = get_subscription_state(
        {"subscription_tier": "pro", "subscription_status": "active", "current_period_end": "2026-04-01T00:00:00Z"},
        now=NOW,
    )
    naive = get_subscription_state(
        {"subscription_tier": "pro", "subscription_status": "active", "current_period_end": "2026-04-01T00:00:00"},
        now=NOW,
    )

    assert zulu.current_period_end == naive.current_period_end
    assert zulu.current_period_end.tzinfo is not None


def test_malformed_dict_becomes_error_state():
    state = get_subscription_state({"subscription_tier": "pro", "cancel_at_period_end": {"nested": True}})

    assert state.is_valid is False
    assert state.errors[0].startswith("Malformed subscription data")


def test_status_messages():
    renewing = get_subscription_state(
        {"subscription_tier": "pro", "subscription_status": "active", "current_period_end": "2026-04-01T00:00:00Z"},
        now=NOW,
    )
    cancelling = get_subscription_state(
        {
            "subscription_tier": "pro",
            "subscription_status": "active",
            "current_period_end": "2026-04-01T00:00:00Z",
            "cancel_at_period_end": True,
        },
        now=NOW,
    )

    assert get_subscription_status_message(renewing) == "Pro subscription renews on April 01, 2026"
    assert get_subscription_status_message(cancelling) == "Pro subscription ends on April 01, 2026 (will not renew)"
    assert get_subscription_status_message(get_subscription_state({"subscription_tier": "special"})) == (
        "You have unlimited access to all features"
    )
    assert get_subscription_status_message(get_subscription_state(None)).startswith("Subscription data error")


def test_recommended_actions():
    error_actions = [a.action for a in get_recommended_actions(get_subscription_state(None))]
    expired_actions = [
        a.action
        for a in get_recommended_actions(
            get_subscription_state({"subscription_tier": "expired", "stripe_customer_id": "cus_1"})
        )
    ]
    unlimited_actions = get_recommended_actions(get_subscription_state({"subscription_tier": "unlimited"}))

    assert error_actions[:2] == ["retry", "contact_support"]
    assert "upgrade" in error_actions
    assert expired_actions == ["upgrade", "manage"]
    assert unlimited_actions == []


def test_plan_helpers():
    assert has_unlimited_searches("pro") is True
    assert has_unlimited_searches("free") is False
    assert is_feature_allowed("pro", "csv_exports") is True
    assert is_feature_allowed("expired", "csv_exports") is False
    assert is_feature_allowed("pro", "no_such_feature") is False
    assert get_subscription_plan("bogus").limits.monthly_searches == 0


def test_active_trial_grants_pro_access():
    data = SubscriptionData(subscription_tier="expired", trial_status="active", trial_end_date=FUTURE)

    state = get_subscription_state(apply_active_trial(data, NOW), NOW)

    assert state.tier == SubscriptionTier.PRO
    assert state.status == "trialing"
    assert state.can_access_features is True
    assert state.will_cancel_at_period_end is True


@pytest.mark.parametrize(
    "data",
    [
        SubscriptionData(subscription_tier="expired", trial_status="active", trial_end_date=PAST),
        SubscriptionData(subscription_tier="expired", trial_status="expired", trial_end_date=FUTURE),
        SubscriptionData(subscription_tier="expired", trial_status="active", trial_end_date="soon"),
        SubscriptionData(subscription_tier="unlimited", trial_status="active", trial_end_date=FUTURE),
        SubscriptionData(subscription_tier="pro", subscription_status="active", trial_status="active",
                         trial_end_date=FUTURE),
    ],
)
def test_trial_overlay_leaves_other_rows_alone(data):
    assert apply_active_trial(data, NOW) == data


def test_trial_overlay_without_profile():
    assert apply_active_trial(None, NOW) is None
