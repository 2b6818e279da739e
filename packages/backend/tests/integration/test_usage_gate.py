import json
from datetime import datetime, timedelta, timezone

import pytest
from moto import mock_aws

from launchfast.models.subscription import SubscriptionData
from launchfast.models.usage import UsageAction
from launchfast.services.profile_service import ProfileService
from launchfast.services.usage_service import UsageService
from launchfast.utils.usage_gate import create_api_response, usage_gate
from tests.fixtures.ddb import create_profiles_table, create_usage_table
from tests.fixtures.events import FakeLambdaContext, api_gateway_event


def _gated(status_code=200):
    profiles = ProfileService(create_profiles_table().name)
    usage = UsageService(create_usage_table().name)
    calls = []

    @usage_gate(UsageAction.SEARCH, profile_service=profiles, usage_service=usage)
    def handler(event, context):
        calls.append(event["path"])
        return create_api_response(status_code, {"ok": status_code == 200})

    return handler, calls, profiles, usage


@mock_aws
def test_free_user_is_stopped_after_five_searches():
    handler, calls, _, usage = _gated()
    event = api_gateway_event("POST", "/products/score", {})

    statuses = [handler(event, FakeLambdaContext())["statusCode"] for _ in range(6)]

    assert statuses == [200, 200, 200, 200, 200, 429]
    assert len(calls) == 5
    assert usage.get_usage("user-123").searches_used == 5


@mock_aws
def test_limit_response_body():
    handler, _, _, _ = _gated()
    event = api_gateway_event("POST", "/products/score", {})
    for _ in range(5):
        handler(event, FakeLambdaContext())

    response = handler(event, FakeLambdaContext())
    body = json.loads(response["body"])

    assert body["error"] == "Usage limit reached"
    assert body["message"] == "Monthly search limit reached (5)"
    assert body["usage"]["remaining"] == 0
    assert body["upgrade_url"] == "/billing"
    assert response["headers"]["Access-Control-Allow-Origin"] == "*"


@mock_aws
def test_failed_handler_call_is_not_counted():
    handler, calls, _, usage = _gated(status_code=400)

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 400
    assert calls == ["/products/score"]
    assert usage.get_usage("user-123").searches_used == 0


@mock_aws
def test_inactive_pro_is_denied_without_calling_handler():
    handler, calls, profiles, _ = _gated()
    profiles.put_profile(
        "user-123", subscription=SubscriptionData(subscription_tier="pro", subscription_status="canceled")
    )

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 403
    assert json.loads(response["body"])["message"] == "Subscription is not active"
    assert calls == []


@mock_aws
def test_active_pro_is_unlimited():
    handler, calls, profiles, usage = _gated()
    profiles.put_profile(
        "user-123", subscription=SubscriptionData(subscription_tier="pro", subscription_status="active")
    )
    event = api_gateway_event("POST", "/products/score", {})

    statuses = {handler(event, FakeLambdaContext())["statusCode"] for _ in range(8)}

    assert statuses == {200}
    assert usage.get_usage("user-123").searches_used == 8


@mock_aws
def test_anonymous_call_is_rejected():
    handler, calls, _, _ = _gated()

    response = handler(api_gateway_event("POST", "/products/score", {}, user_id=None), FakeLambdaContext())

    assert response["statusCode"] == 401
    assert calls == []


@mock_aws
def test_missing_usage_table_fails_closed():
    profiles = ProfileService(create_profiles_table().name)

    @usage_gate(UsageAction.SEARCH, profile_service=profiles, usage_service=UsageService("no-such-table"))
    def handler(event, context):
        return create_api_response(200, {})

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 503


@mock_aws
def test_active_pro_past_its_billing_period_is_denied():
    handler, calls, profiles, usage = _gated()
    ended = (datetime.now(timezone.utc) - timedelta(days=30)).isoformat()
    profiles.put_profile("user-123", subscription=SubscriptionData(
        subscription_tier="pro", subscription_status="active", current_period_end=ended
    ))

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 403
    assert json.loads(response["body"])["message"] == "Subscription marked as active but period has ended"
    assert calls == []
    assert usage.get_usage("user-123") is None


@mock_aws
def test_unknown_tier_is_denied():
    handler, calls, profiles, _ = _gated()
    profiles.put_profile("user-123", subscription=SubscriptionData(subscription_tier="gold"))

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 403
    assert calls == []


@mock_aws
def test_overlapping_call_cannot_take_the_last_search():
    profiles = ProfileService(create_profiles_table().name)
    usage = UsageService(create_usage_table().name)
    for _ in range(4):
        usage.check_usage("user-123", None, None, UsageAction.SEARCH, increment=True)
    event = api_gateway_event("POST", "/products/score", {})
    served = []
    overlapping = []

    @usage_gate(UsageAction.SEARCH, profile_service=profiles, usage_service=usage)
    def handler(event, context):
        served.append(1)
        if len(served) == 1:
            # A second request for the same user arrives while this one runs
            overlapping.append(handler(event, context)["statusCode"])
        return create_api_response(200, {})

    outer = handler(event, FakeLambdaContext())

    assert outer["statusCode"] == 200
    assert overlapping == [429]
    assert len(served) == 1
    assert usage.get_usage("user-123").searches_used == 5


@mock_aws
def test_handler_error_gives_the_search_back():
    profiles = ProfileService(create_profiles_table().name)
    usage = UsageService(create_usage_table().name)

    @usage_gate(UsageAction.SEARCH, profile_service=profiles, usage_service=usage)
    def handler(event, context):
        raise RuntimeError("provider timeout")

    with pytest.raises(RuntimeError):
        handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert usage.get_usage("user-123").searches_used == 0


@mock_aws
def test_promo_trial_unlocks_searches():
    handler, calls, profiles, _ = _gated()
    trial_end = (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
    profiles.put_profile("user-123", subscription=SubscriptionData(
        subscription_tier="expired", trial_status="active", trial_end_date=trial_end
    ))
    event = api_gateway_event("POST", "/products/score", {})

    statuses = {handler(event, FakeLambdaContext())["statusCode"] for _ in range(7)}

    assert statuses == {200}
    assert len(calls) == 7


@mock_aws
def test_ended_trial_no_longer_unlocks_searches():
    handler, calls, profiles, _ = _gated()
    trial_end = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
    profiles.put_profile("user-123", subscription=SubscriptionData(
        subscription_tier="expired", trial_status="active", trial_end_date=trial_end
    ))

    response = handler(api_gateway_event("POST", "/products/score", {}), FakeLambdaContext())

    assert response["statusCode"] == 429
    assert calls == []
