"""Tracking identifier generation."""

from __future__ import annotations

import secrets
from datetime import UTC, datetime

DEFAULT_PREFIX = "PRCL"


def generate_tracking_id(
    prefix: str = DEFAULT_PREFIX,
    now: datetime | None = None,
) -> str:
    """Return a new ``PREFIX-YYYYMMDD-XXXXXX`` tracking id.

    The date is the UTC calendar day and the suffix is three random bytes
    in uppercase hex. Uniqueness is not checked here; the parcel store
    rejects duplicates and the flow regenerates.
    """
    moment = now or datetime.now(tz=UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    day = moment.astimezone(UTC).strftime("%Y%m%d")
    suffix = secrets.token_hex(3).upper()
    return f"{prefix}-{day}-{suffix}"

