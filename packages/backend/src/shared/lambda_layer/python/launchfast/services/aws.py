"""
Process-wide boto3 objects shared by the LaunchFast services.

Lambda containers are reused between invocations, so resources and clients
are built once per container and cached.
"""

from typing import Any, Optional
import boto3
import os
from boto3.resources.base import ServiceResource
from functools import cache


def get_region_name() -> Optional[str]:
    """AWS_REGION from the Lambda environment, None outside of it (boto3 then resolves the region)."""
    return os.getenv("AWS_REGION")


def _region_kwargs() -> dict:
    region = get_region_name()
    return {"region_name": region} if region else {}


@cache
def get_dynamodb_resource() -> ServiceResource:
    return boto3.resource("dynamodb", **_region_kwargs())


@cache
def get_ddb_table(table_name: str) -> Any:
    """Table handle for profiles, usage counters or promo codes."""
    return get_dynamodb_resource().Table(table_name)


@cache
def get_ses_client() -> Any:
    """SES client for the trial emails."""
    return boto3.client("ses", **_region_kwargs())


def clear_aws_caches() -> None:
    """Forget cached boto3 objects so the next call builds them again (used under moto)."""
    get_dynamodb_resource.cache_clear()
    get_ddb_table.cache_clear()
    get_ses_client.cache_clear()
