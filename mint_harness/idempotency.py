"""
Idempotency keys for create requests.
"""

import uuid
from typing import Optional


def new_idempotency_key(prefix: Optional[str] = None) -> str:
    """Return a fresh random key, optionally prefixed ("transfer-<uuid4>")."""
    key = str(uuid.uuid4())
    return f"{prefix}-{key}" if prefix else key


def is_uuid(value: str) -> bool:
    """True if value parses as a UUID (the format of remote resource ids)."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True
