"""Async PostgREST client wrapper.

This is the single point of HTTP interaction for the PostgREST share
storage.  It speaks the Supabase REST dialect (``/rest/v1``, ``apikey``
header, profile headers for non-public schemas).
"""

from __future__ import annotations

import json
from typing import Any, Mapping

import httpx

from .errors import (
    PostgrestAuthError,
    PostgrestConflictError,
    PostgrestError,
    PostgrestNotFoundError,
)

Filters = Mapping[str, "tuple[str, Any] | Any"]

# Module-level shared client for connection pooling in app runtimes.
_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


def _reset_shared_async_client_for_tests() -> None:
    """Test helper: clear shared client cache (does not close the instance)."""
    global _shared_async_client
    _shared_async_client = None


def _split_schema_table(table: str, default_schema: str) -> tuple[str, str]:
    # Accept "app.shareable_shares" as well as "shareable_shares"; non-public
    # schemas are selected via Accept-Profile/Content-Profile headers.
    if "." in table:
        schema, name = table.split(".", 1)
        return schema.strip(), name.strip()
    return default_schema, table.strip()


def _encode_filter_value(op: str, value: Any) -> str:
    if op == "is":
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    if op == "cs":
        # JSON containment, e.g. params=cs.{"project":"p1"}
        return json.dumps(value, separators=(",", ":"), sort_keys=True)

    if value is None:
        raise ValueError(f"{op} does not support None; use op='is' with value=None")

    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _filters_to_params(filters: Filters | None) -> dict[str, str]:
    if not filters:
        return {}

    params: dict[str, str] = {}
    for col, spec in filters.items():
        if isinstance(spec, tuple) and len(spec) == 2:
            op, val = spec
        else:
            op, val = "eq", spec
        op_str = str(op)
        params[str(col)] = f"{op_str}.{_encode_filter_value(op_str, val)}"
    return params


class PostgrestClient:
    """Minimal async PostgREST client (service role) returning JSON rows.

    Without ``http_client`` all instances share one module-level
    ``httpx.AsyncClient`` pool that is never closed.  Pass an explicitly
    scoped client (e.g. one opened in the app lifespan) to control its
    lifetime.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_role_key: str,
        default_schema: str = "public",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        if not service_role_key:
            raise ValueError("service_role_key is required")

        self._base_url = base_url.rstrip("/")
        self._service_role_key = service_role_key
        self._default_schema = default_schema or "public"
        self._timeout_seconds = float(timeout_seconds)
        self._client = http_client or _get_shared_async_client()

    @property
    def base_rest_url(self) -> str:
        return f"{self._base_url}/rest/v1"

    def _auth_headers(self) -> dict[str, str]:
        # Never log these headers.
        return {
            "apikey": self._service_role_key,
            "Authorization": f"Bearer {self._service_role_key}",
        }

    def _schema_headers(self, schema: str, method: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        if schema:
            headers["Accept-Profile"] = schema
            if method.upper() in ("POST", "PATCH", "PUT", "DELETE"):
                headers["Content-Profile"] = schema
        return headers

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        message = resp.text
        code = details = hint = None

        try:
            payload = resp.json()
            if isinstance(payload, dict):
                message = payload.get("message") or message
                code = payload.get("code")
                details = payload.get("details")
                hint = payload.get("hint")
        except ValueError:
            pass

        err_cls: type[PostgrestError]
        if resp.status_code in (401, 403):
            err_cls = PostgrestAuthError
        elif resp.status_code == 404:
            err_cls = PostgrestNotFoundError
        elif resp.status_code == 409:
            err_cls = PostgrestConflictError
        else:
            err_cls = PostgrestError

        raise err_cls(
            status_code=resp.status_code,
            message=message,
            code=code,
            details=details,
            hint=hint,
        )

    async def _request_rows(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        schema, table_name = _split_schema_table(table, self._default_schema)
        headers = {
            **self._auth_headers(),
            **self._schema_headers(schema, method),
        }
        if prefer:
            headers["Prefer"] = prefer

        resp = await self._client.request(
            method,
            f"{self.base_rest_url}/{table_name}",
            params=params,
            json=json_body,
            headers=headers,
            timeout=self._timeout_seconds,
        )
        self._raise_for_error(resp)
        payload = resp.json()
        if not isinstance(payload, list):
            raise PostgrestError(
                status_code=500,
                message=f"expected list response from {method.lower()}",
            )
        return payload

    async def select(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        columns: str = "*",
        limit: int | None = None,
        order: str | None = None,
    ) -> list[dict[str, Any]]:
        params = _filters_to_params(filters)
        params["select"] = columns
        if limit is not None:
            params["limit"] = str(int(limit))
        if order:
            params["order"] = order
        return await self._request_rows("GET", table, params=params)

    async def insert(
        self,
        table: str,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        return await self._request_rows(
            "POST", table, json_body=dict(data), prefer="return=representation",
        )

    async def update(
        self,
        table: str,
        filters: Filters | None,
        data: Mapping[str, Any],
    ) -> list[dict[str, Any]]:
        return await self._request_rows(
            "PATCH",
            table,
            params=_filters_to_params(filters),
            json_body=dict(data),
            prefer="return=representation",
        )

    async def delete(
        self,
        table: str,
        filters: Filters | None,
    ) -> list[dict[str, Any]]:
        return await self._request_rows(
            "DELETE",
            table,
            params=_filters_to_params(filters),
            prefer="return=representation",
        )

    async def rpc(
        self,
        function_name: str,
        params: Mapping[str, Any] | None = None,
        *,
        schema: str | None = None,
    ) -> Any:
        schema_name = schema or self._default_schema
        headers = {
            **self._auth_headers(),
            **self._schema_headers(schema_name, "POST"),
        }
        resp = await self._client.request(
            "POST",
            f"{self.base_rest_url}/rpc/{function_name}",
            json=dict(params or {}),
            headers=headers,
            timeout=self._timeout_seconds,
        )
        self._raise_for_error(resp)
        if not resp.content:
            return None
        return resp.json()
