from __future__ import annotations

from functools import lru_cache

import boto3
from botocore.config import Config

from ...settings import Settings


@lru_cache(maxsize=4)
def botocore_config(max_attempts: int = 3) -> Config:
    # Botocore's own retry layer is the only automatic retry by default; the
    # app-layer retry in ddb_call stays at a single attempt unless configured.
    return Config(
        retries={"max_attempts": max(1, int(max_attempts)), "mode": "standard"},
        connect_timeout=2,
        read_timeout=10,
    )


@lru_cache(maxsize=4)
def dynamodb_resource(
    *, region_name: str, endpoint_url: str | None = None, max_attempts: int = 3
):
    return boto3.resource(
        "dynamodb",
        region_name=region_name,
        endpoint_url=endpoint_url or None,
        config=botocore_config(max_attempts),
    )


def table_resource(table_name: str, settings: Settings):
    resource = dynamodb_resource(
        region_name=settings.aws_region,
        endpoint_url=settings.ddb_endpoint_url,
        max_attempts=settings.ddb_client_max_attempts,
    )
    return resource.Table(table_name)
