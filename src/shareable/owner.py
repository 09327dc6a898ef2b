"""Owner display-name resolution for public views.

The name is cosmetic: any lookup failure degrades to ``"Someone"`` and never
fails the surrounding action.
"""

from __future__ import annotations

import asyncio
import logging

from .auth.base import AuthProvider, owner_lookup_request

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = 'Someone'


def format_owner_name(name: str | None, display: str) -> str:
    """Apply an owner display mode: ``first-name``, ``full`` or ``anonymous``."""
    if not name or display == 'anonymous':
        return ANONYMOUS_NAME
    if display == 'first-name':
        parts = name.split()
        return parts[0] if parts else ANONYMOUS_NAME
    return name


async def resolve_owner_name(
    auth: AuthProvider,
    owner_id: str,
    *,
    display: str = 'first-name',
    timeout: float | None = None,
) -> str:
    """Look up ``owner_id`` through the internal side channel and format it."""
    request = owner_lookup_request(owner_id)
    try:
        user = await asyncio.wait_for(auth.get_user(request), timeout)
    except Exception:
        logger.debug('owner lookup failed owner_id=%s', owner_id, exc_info=True)
        return ANONYMOUS_NAME
    return format_owner_name(user.name if user is not None else None, display)
