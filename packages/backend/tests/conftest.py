import os

import pytest

# Fake credentials so nothing can reach a real AWS account
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

# Read by handlers at import time
os.environ["PROFILES_TABLE_NAME"] = "test-profiles-table"
os.environ["USAGE_TABLE_NAME"] = "test-usage-table"
os.environ["PROMO_TABLE_NAME"] = "test-promo-table"
os.environ["TRIAL_EMAIL_SENDER"] = "noreply@launchfast.app"
os.environ["APP_BASE_URL"] = "https://app.launchfast.test"
os.environ["CRON_SECRET"] = "test-cron-secret"

from launchfast.services.aws import clear_aws_caches  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_aws_clients():
    """boto3 objects must be created inside each test's mock."""
    clear_aws_caches()
    yield
    clear_aws_caches()
