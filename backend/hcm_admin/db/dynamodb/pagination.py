from __future__ import annotations

import base64
import binascii
import json
from decimal import Decimal
from typing import Any

from .errors import DdbValidation


def _json_default(v: Any) -> Any:
    # boto3's resource layer hands numbers back as Decimal.
    if isinstance(v, Decimal):
        return int(v) if v == v.to_integral_value() else float(v)
    raise TypeError(f"Unsupported key attribute type: {type(v).__name__}")


def encode_next_token(last_evaluated_key: dict[str, Any] | None) -> str | None:
    """Encode a LastEvaluatedKey as an opaque base64(JSON) continuation token."""
    if not last_evaluated_key:
        return None

    raw = json.dumps(
        last_evaluated_key,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_next_token(next_token: str | None) -> dict[str, Any] | None:
    """Inverse of `encode_next_token`. Malformed tokens raise DdbValidation."""
    if not next_token:
        return None

    try:
        raw = base64.b64decode(str(next_token).strip(), validate=True).decode("utf-8")
        payload = json.loads(raw)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise DdbValidation(message="Invalid nextToken", operation="DecodeToken") from e

    if not isinstance(payload, dict) or not payload:
        raise DdbValidation(message="Invalid nextToken", operation="DecodeToken")

    # Key attributes are scalars; anything nested was not produced by us.
    for k, v in payload.items():
        if not isinstance(k, str) or v is None or isinstance(v, (dict, list, bool)):
            raise DdbValidation(message="Invalid nextToken", operation="DecodeToken")

    return payload
