"""Member count shown on the landing page."""

from __future__ import annotations

import logging

from wayfarer_persistence import PersistenceError, ProfileStore

logger = logging.getLogger(__name__)

FALLBACK_MEMBER_COUNT = "50K+"


def format_member_count(count: int) -> str:
    """Render a count as ``"1.2M+"``, ``"1.2K+"`` or ``"<n>+"``."""
    if count >= 1_000_000:
        return f"{count / 1_000_000:.1f}M+"
    if count >= 1_000:
        return f"{count / 1_000:.1f}K+"
    return f"{count}+"


async def member_count(profiles: ProfileStore) -> str:
    """Count profiles for display, falling back to a fixed figure if the store fails."""
    try:
        count = await profiles.count()
    except PersistenceError:
        logger.warning("Member count unavailable; showing fallback %s", FALLBACK_MEMBER_COUNT, exc_info=True)
        return FALLBACK_MEMBER_COUNT
    return format_member_count(count)
