"""In-memory share storage for local development and tests.

Satisfies ``ExtendedStorage`` but stores everything in a dict (no persistence
across restarts).  Mutations are serialized with an ``asyncio.Lock`` so view
counts stay exact under concurrent requests in one event loop.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable

from ..analytics import derive_analytics
from ..types import (
    CreateShareInput,
    Share,
    ShareAnalyticsData,
    ShareFilter,
    ShareUpdate,
)

from .base import StorageCapability

DEFAULT_CAPABILITIES = frozenset({StorageCapability.UPDATE})


def _snapshot(share: Share) -> Share:
    return replace(
        share,
        params=dict(share.params),
        visible_fields=dict(share.visible_fields),
    )


class InMemoryShareStorage:
    """Dict-backed share store keyed by share id.

    Args:
        capabilities: Declared optional capabilities.  Pass an empty set to
            behave like a base-only backend.
    """

    def __init__(
        self,
        capabilities: Iterable[StorageCapability] = DEFAULT_CAPABILITIES,
    ) -> None:
        self.capabilities: frozenset[StorageCapability] = frozenset(capabilities)
        self._shares: dict[str, Share] = {}
        self._lock = asyncio.Lock()

    async def create_share(self, data: CreateShareInput) -> Share:
        share = Share(
            id=str(uuid.uuid4()),
            type=data.type,
            token=data.token,
            owner_id=data.owner_id,
            params=dict(data.params),
            visible_fields=dict(data.visible_fields),
            view_count=0,
            created_at=datetime.now(timezone.utc),
            expires_at=data.expires_at,
        )
        async with self._lock:
            if any(s.token == share.token for s in self._shares.values()):
                raise ValueError('share token already exists')
            self._shares[share.id] = share
        return _snapshot(share)

    async def get_share(self, token: str) -> Share | None:
        for share in self._shares.values():
            if share.token == token:
                return _snapshot(share)
        return None

    async def get_shares_by_owner(
        self,
        owner_id: str,
        type: str | None = None,
        share_filter: ShareFilter | None = None,
    ) -> list[Share]:
        result = []
        for share in self._shares.values():
            if share.owner_id != owner_id:
                continue
            if type is not None and share.type != type:
                continue
            if share_filter is not None and not share_filter.matches(share):
                continue
            result.append(_snapshot(share))
        return result

    async def revoke_share(self, share_id: str, owner_id: str) -> None:
        async with self._lock:
            share = self._shares.get(share_id)
            if share is not None and share.owner_id == owner_id:
                del self._shares[share_id]

    async def increment_view_count(self, token: str) -> None:
        async with self._lock:
            for share in self._shares.values():
                if share.token == token:
                    share.view_count += 1
                    return

    async def update_share(
        self, share_id: str, owner_id: str, update: ShareUpdate,
    ) -> Share | None:
        async with self._lock:
            share = self._shares.get(share_id)
            if share is None or share.owner_id != owner_id:
                return None
            if update.visible_fields is not None:
                share.visible_fields = dict(update.visible_fields)
            if update.expires_at is not None:
                share.expires_at = update.expires_at
            return _snapshot(share)

    async def get_analytics(
        self, owner_id: str, type: str | None = None,
    ) -> ShareAnalyticsData:
        return derive_analytics(await self.get_shares_by_owner(owner_id, type))
