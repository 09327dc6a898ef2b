"""PostgREST-backed share storage.

Persists shares in a ``shareable_shares`` table through ``PostgrestClient``:

  id uuid pk default gen_random_uuid(), type text, token text unique,
  owner_id text, params jsonb default '{}', visible_fields jsonb default '{}',
  view_count int default 0, created_at timestamptz default now(),
  expires_at timestamptz null

View counts are incremented atomically by the ``increment_share_view_count``
SQL function when it is installed; otherwise a read-modify-write fallback is
used, which can lose increments under concurrent views.
"""

from __future__ import annotations

import logging
from typing import Any

from ..types import (
    CreateShareInput,
    Share,
    ShareFilter,
    ShareUpdate,
)

from .base import StorageCapability, row_to_share
from .errors import PostgrestError, PostgrestNotFoundError
from .postgrest_client import PostgrestClient

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "shareable_shares"
INCREMENT_FUNCTION = "increment_share_view_count"


class PostgrestShareStorage:
    """Share storage backed by a PostgREST table.

    Declares the UPDATE capability; analytics are derived by the dispatcher.
    """

    capabilities = frozenset({StorageCapability.UPDATE})

    def __init__(
        self,
        client: PostgrestClient,
        table: str = DEFAULT_TABLE,
        *,
        use_increment_rpc: bool = True,
    ) -> None:
        self._client = client
        self._table = table
        self._use_increment_rpc = use_increment_rpc

    async def create_share(self, data: CreateShareInput) -> Share:
        row: dict[str, Any] = {
            "type": data.type,
            "token": data.token,
            "owner_id": data.owner_id,
            "params": data.params,
            "visible_fields": data.visible_fields,
            "expires_at": data.expires_at.isoformat() if data.expires_at else None,
        }
        rows = await self._client.insert(self._table, row)
        if not rows:
            raise PostgrestError(status_code=500, message="failed to create share")
        return row_to_share(rows[0])

    async def get_share(self, token: str) -> Share | None:
        rows = await self._client.select(
            self._table,
            filters={"token": ("eq", token)},
            limit=1,
        )
        return row_to_share(rows[0]) if rows else None

    async def get_shares_by_owner(
        self,
        owner_id: str,
        type: str | None = None,
        share_filter: ShareFilter | None = None,
    ) -> list[Share]:
        filters: dict[str, Any] = {"owner_id": ("eq", owner_id)}
        if type is not None:
            filters["type"] = ("eq", type)
        if share_filter is not None and share_filter.params:
            filters["params"] = ("cs", dict(share_filter.params))
        rows = await self._client.select(
            self._table,
            filters=filters,
            order="created_at.asc",
        )
        return [row_to_share(r) for r in rows]

    async def revoke_share(self, share_id: str, owner_id: str) -> None:
        await self._client.delete(
            self._table,
            filters={"id": ("eq", share_id), "owner_id": ("eq", owner_id)},
        )

    async def increment_view_count(self, token: str) -> None:
        if self._use_increment_rpc:
            try:
                await self._client.rpc(INCREMENT_FUNCTION, {"share_token": token})
                return
            except PostgrestNotFoundError:
                logger.warning(
                    "rpc %s not installed; falling back to read-modify-write",
                    INCREMENT_FUNCTION,
                )
                self._use_increment_rpc = False

        share = await self.get_share(token)
        if share is None:
            return
        await self._client.update(
            self._table,
            filters={"token": ("eq", token)},
            data={"view_count": share.view_count + 1},
        )

    async def update_share(
        self, share_id: str, owner_id: str, update: ShareUpdate,
    ) -> Share | None:
        data: dict[str, Any] = {}
        if update.visible_fields is not None:
            data["visible_fields"] = update.visible_fields
        if update.expires_at is not None:
            data["expires_at"] = update.expires_at.isoformat()

        filters = {"id": ("eq", share_id), "owner_id": ("eq", owner_id)}
        if update.is_empty():
            rows = await self._client.select(self._table, filters=filters, limit=1)
        else:
            rows = await self._client.update(self._table, filters=filters, data=data)
        return row_to_share(rows[0]) if rows else None
