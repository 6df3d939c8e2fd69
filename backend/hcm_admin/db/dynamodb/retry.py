from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

from botocore.exceptions import BotoCoreError, ClientError

from .errors import (
    DdbConflict,
    DdbError,
    DdbInternal,
    DdbThrottled,
    DdbUnavailable,
    DdbValidation,
)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    # One attempt unless configured: failures reach the caller as they happened.
    max_attempts: int = 1
    base_delay_s: float = 0.05
    max_delay_s: float = 1.5

    def backoff(self, attempt: int) -> float:
        """Full-jitter exponential delay before retry number `attempt`."""
        ceiling = min(self.max_delay_s, self.base_delay_s * (2 ** max(0, attempt - 1)))
        return random.random() * ceiling


# ClientError code -> (error class, retryable)
_CODE_MAP: dict[str, tuple[type[DdbError], bool]] = {
    "ConditionalCheckFailedException": (DdbConflict, False),
    "ValidationException": (DdbValidation, False),
    "ParamValidationError": (DdbValidation, False),
    "AccessDeniedException": (DdbUnavailable, False),
    "UnrecognizedClientException": (DdbUnavailable, False),
    "ResourceNotFoundException": (DdbUnavailable, False),
    "ProvisionedThroughputExceededException": (DdbThrottled, True),
    "ThrottlingException": (DdbThrottled, True),
    "RequestLimitExceeded": (DdbThrottled, True),
    "InternalServerError": (DdbThrottled, True),
    "ServiceUnavailable": (DdbThrottled, True),
}


def _aws_field(e: ClientError, section: str, name: str) -> str | None:
    value = ((e.response or {}).get(section) or {}).get(name)
    return str(value) if value else None


def _client_error_message(cls: type[DdbError], code: str, detail: str | None) -> str:
    if cls is DdbConflict:
        summary = "DynamoDB conditional check failed"
    elif cls is DdbValidation:
        summary = "DynamoDB request validation failed"
    elif cls is DdbUnavailable:
        summary = f"DynamoDB unavailable ({code})"
    elif cls is DdbThrottled:
        summary = f"DynamoDB request throttled or unavailable ({code})"
    else:
        summary = f"DynamoDB request failed ({code or 'ClientError'})"
    # Keep the service's own message for diagnostics.
    return f"{summary}: {detail}" if detail else summary


def map_botocore_error(
    *,
    operation: str,
    table_name: str | None,
    key: dict[str, Any] | None,
    exc: Exception,
) -> DdbError:
    """Translate a boto3/botocore failure into the matching DdbError."""
    if isinstance(exc, DdbError):
        return exc

    ctx: dict[str, Any] = {"operation": operation, "table_name": table_name, "key": key, "cause": exc}

    if isinstance(exc, ClientError):
        code = _aws_field(exc, "Error", "Code") or ""
        cls, retryable = _CODE_MAP.get(code, (DdbInternal, False))
        return cls(
            message=_client_error_message(cls, code, _aws_field(exc, "Error", "Message")),
            aws_request_id=_aws_field(exc, "ResponseMetadata", "RequestId"),
            retryable=retryable,
            **ctx,
        )

    if isinstance(exc, BotoCoreError):
        # Connection/endpoint problems: transient from the caller's point of view.
        return DdbUnavailable(message=f"DynamoDB client error: {exc}", retryable=True, **ctx)

    return DdbInternal(message=f"Unexpected DynamoDB error: {exc}", **ctx)


def ddb_call(
    operation: str,
    fn: Callable[[], T],
    *,
    table_name: str | None = None,
    key: dict[str, Any] | None = None,
    retry_policy: RetryPolicy | None = None,
) -> T:
    """Run one DynamoDB call, mapping botocore failures to DdbError.

    Only errors flagged retryable are retried, and only while the policy has
    attempts left.
    """
    policy = retry_policy or RetryPolicy()
    attempts = max(1, int(policy.max_attempts))

    attempt = 1
    while True:
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            mapped = map_botocore_error(operation=operation, table_name=table_name, key=key, exc=e)
            if not mapped.retryable or attempt >= attempts:
                if mapped is e:
                    raise
                raise mapped from e
        time.sleep(policy.backoff(attempt))
        attempt += 1
