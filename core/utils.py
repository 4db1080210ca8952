"""Utility functions for linkhop."""

import time
import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO timestamp (or pass through a datetime)."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def generate_context_key() -> str:
    """Opaque key for a preserved navigation context."""
    return f"nav_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
