"""Timezone-aware clock used for every stored timestamp."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time in UTC with tzinfo set"""
    return datetime.now(timezone.utc)
