"""Human-facing reference ids (P-20250301-3F2A, AFV-..., AT-...)."""

from __future__ import annotations

import secrets
from datetime import UTC, date, datetime

PROJECT_PREFIX = "P"
DEVIATION_PREFIX = "AFV"
TASK_PREFIX = "AT"


def generate_reference(prefix: str, *, today: date | None = None) -> str:
    """
    Build a reference id: PREFIX-YYYYMMDD-XXXX (XXXX = 4 uppercase hex digits).

    Not guaranteed unique; the remote store's id stays the identity.
    """
    if not prefix:
        raise ValueError("Reference prefix must not be empty")
    day = today or datetime.now(UTC).date()
    return f"{prefix}-{day:%Y%m%d}-{secrets.token_hex(2).upper()}"
