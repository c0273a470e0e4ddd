"""API error payloads.

Every error response has the same shape:

    {
      "error": {
        "code": "MODEL_NOT_READY",
        "message": "Model 'credit-score' is not ready (status: loading)",
        "status": 500,
        "request_id": "...",
        "timestamp": "...",
        "details": {...}
      }
    }
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional


def now_iso() -> str:
    """ISO-8601 timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()


def ensure_request_id(value: Optional[str]) -> str:
    """Reuse a client supplied request id or generate one."""
    if value and value.strip():
        return value.strip()[:128]
    return str(uuid.uuid4())


def error_payload(
    *,
    code: str,
    message: str,
    status: int,
    request_id: str,
    details: Optional[Any] = None,
) -> dict[str, Any]:
    """Build a uniform error payload."""
    payload: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
            "status": status,
            "request_id": request_id,
            "timestamp": now_iso(),
        }
    }
    if details is not None:
        payload["error"]["details"] = details
    return payload
