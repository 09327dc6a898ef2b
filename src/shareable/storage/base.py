"""Storage contract for share records.

Storage is a two-tier interface:

  - ``BaseStorage``: operations every backend implements.
  - ``ExtendedStorage``: adds ``update_share`` and ``get_analytics``.

Whether a backend offers the extended operations is declared explicitly in
its ``capabilities`` set (``StorageCapability.UPDATE`` /
``StorageCapability.ANALYTICS``); the dispatcher reads that declaration and
never probes for methods.

Concurrency guarantees (atomic view-count increments, owner-scoped revoke)
belong to the implementation.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, runtime_checkable

from ..types import (
    CreateShareInput,
    Share,
    ShareAnalyticsData,
    ShareFilter,
    ShareUpdate,
)


class StorageCapability(str, enum.Enum):
    UPDATE = 'update'
    ANALYTICS = 'analytics'


@runtime_checkable
class BaseStorage(Protocol):
    """Required share persistence operations."""

    capabilities: frozenset[StorageCapability]

    async def create_share(self, data: CreateShareInput) -> Share: ...

    async def get_share(self, token: str) -> Share | None: ...

    async def get_shares_by_owner(
        self,
        owner_id: str,
        type: str | None = None,
        share_filter: ShareFilter | None = None,
    ) -> list[Share]: ...

    async def revoke_share(self, share_id: str, owner_id: str) -> None: ...

    async def increment_view_count(self, token: str) -> None: ...


@runtime_checkable
class ExtendedStorage(BaseStorage, Protocol):
    """Capability-gated operations; see ``StorageCapability``."""

    async def update_share(
        self, share_id: str, owner_id: str, update: ShareUpdate,
    ) -> Share | None:
        """Apply a partial update scoped to the owner.

        Returns None when no share with that id belongs to the owner.
        """
        ...

    async def get_analytics(
        self, owner_id: str, type: str | None = None,
    ) -> ShareAnalyticsData: ...


def has_capability(storage: BaseStorage, capability: StorageCapability) -> bool:
    return capability in storage.capabilities


# ── Row mapping ──────────────────────────────────────────────────────


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a datetime or ISO-8601 string to an aware UTC datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if dt.tzinfo is None:
        # Some drivers return naive datetimes for timestamptz columns.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _pick(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def row_to_share(row: Mapping[str, Any]) -> Share:
    """Normalize a database row (snake_case or camelCase) into a ``Share``.

    Null JSON columns become empty dicts.
    """
    return Share(
        id=str(row['id']),
        type=row['type'],
        token=row['token'],
        owner_id=str(_pick(row, 'owner_id', 'ownerId')),
        params=dict(_pick(row, 'params') or {}),
        visible_fields=dict(_pick(row, 'visible_fields', 'visibleFields') or {}),
        view_count=int(_pick(row, 'view_count', 'viewCount') or 0),
        created_at=parse_timestamp(_pick(row, 'created_at', 'createdAt')),
        expires_at=parse_timestamp(_pick(row, 'expires_at', 'expiresAt')),
    )
