"""FastAPI adapter: HTTP requests → normalized actions → JSON responses.

Wire encoding (segments are the path parts after the mount prefix):

  GET    {type}?action=list        → list
  GET    {type}?action=analytics   → analytics
  GET    {type}/{token}/og         → og (preview image, or JSON config)
  GET    {type}/{token}            → view
  GET    {type}                    → list
  POST   {type}                    → create   body {visibleFields, params, expiresAt?}
  PATCH  {type}                    → update   body {shareId, visibleFields?, expiresAt?}
  DELETE {type}                    → revoke   body {shareId}

Error contract:
  - ``ShareableError`` → its status, body ``{"error": message}``.
  - Anything else → 500 ``{"error": "Internal server error"}``; the cause is
    logged, never returned.

The reserved ``x-shareable-owner-id`` header is stripped from every incoming
request before dispatch.

This module provides:
  1. ``parse_route``: segments + method + query + body → action.
  2. ``create_shareable_router``: FastAPI router factory.
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Union

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

from ..actions import (
    AnalyticsAction,
    CreateAction,
    ListAction,
    OgAction,
    RevokeAction,
    ShareableAction,
    UpdateAction,
    ViewAction,
)
from ..auth.base import OWNER_ID_HEADER, strip_owner_id_header
from ..dispatcher import handle_action
from ..errors import ShareableError
from ..observability.logging import (
    REQUEST_ID_HEADER,
    request_id_ctx,
    resolve_request_id,
)
from ..registry import Shareable
from ..types import PreviewConfig

logger = logging.getLogger(__name__)

OG_CACHE_CONTROL = 'public, max-age=3600, s-maxage=3600'
OG_MEDIA_TYPE = 'image/svg+xml'

OgRenderer = Callable[[PreviewConfig], Union[str, bytes, Awaitable[Union[str, bytes]]]]


# ── Route parsing ────────────────────────────────────────────────────


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _as_visibility(value: Any) -> dict[str, bool]:
    # Only real booleans count; "false" would read as visible.
    if not isinstance(value, Mapping):
        return {}
    return {str(k): v for k, v in value.items() if isinstance(v, bool)}


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_route(
    segments: list[str],
    method: str,
    query: Mapping[str, str],
    body: Mapping[str, Any] | None = None,
) -> ShareableAction | None:
    """Translate HTTP routing into a ``ShareableAction``.

    Returns None for requests that map to no action.
    """
    if not segments or not segments[0]:
        return None
    type_ = segments[0]
    body = body or {}
    method = method.upper()

    if method == 'GET':
        action = query.get('action')
        if action == 'list':
            return ListAction(type=type_)
        if action == 'analytics':
            return AnalyticsAction(type=type_)

        token = segments[1] if len(segments) > 1 else None
        if token and len(segments) > 2 and segments[2] == 'og':
            return OgAction(token=token)
        if token:
            return ViewAction(token=token)
        return ListAction(type=type_)

    if method == 'POST':
        return CreateAction(
            type=type_,
            visible_fields=_as_visibility(body.get('visibleFields')),
            params=_as_dict(body.get('params')),
            expires_at=_optional_str(body.get('expiresAt')),
        )

    if method == 'PATCH':
        share_id = _optional_str(body.get('shareId'))
        if share_id is None:
            return None
        visible = body.get('visibleFields')
        return UpdateAction(
            share_id=share_id,
            type=type_,
            visible_fields=_as_visibility(visible) if visible is not None else None,
            expires_at=_optional_str(body.get('expiresAt')),
        )

    if method == 'DELETE':
        share_id = _optional_str(body.get('shareId'))
        if share_id is None:
            return None
        return RevokeAction(share_id=share_id)

    return None


# ── Serialization ────────────────────────────────────────────────────


def to_jsonable(value: Any) -> Any:
    """Convert action results (dataclasses with ``to_dict``) to JSON data."""
    if hasattr(value, 'to_dict'):
        return to_jsonable(value.to_dict())
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return jsonable_encoder(value)


def _error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


async def _read_body(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


async def _render_og(result: PreviewConfig, renderer: OgRenderer) -> Response:
    rendered = renderer(result)
    if inspect.isawaitable(rendered):
        rendered = await rendered
    return Response(
        content=rendered,
        media_type=OG_MEDIA_TYPE,
        headers={'Cache-Control': OG_CACHE_CONTROL},
    )


# ── Route factory ────────────────────────────────────────────────────


def create_shareable_router(
    instance: Shareable,
    *,
    prefix: str | None = None,
    og_renderer: OgRenderer | None = None,
) -> APIRouter:
    """Create the shareable API router.

    Args:
        instance: Registry plus collaborators.
        prefix: Mount point; defaults to ``settings.api_prefix``.
        og_renderer: Optional ``PreviewConfig -> SVG`` renderer.  Without
            one (or when it fails) the ``og`` action returns JSON.

    Returns:
        FastAPI router with a single catch-all route.
    """
    mount = (prefix if prefix is not None else instance.settings.api_prefix).rstrip('/')
    router = APIRouter(tags=['shareable'])

    async def dispatch(path: str, request: Request) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        ctx_token = request_id_ctx.set(request_id)
        try:
            response = await _dispatch(path, request)
        finally:
            request_id_ctx.reset(ctx_token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    async def _dispatch(path: str, request: Request) -> Response:
        if OWNER_ID_HEADER in request.headers:
            logger.warning('dropping reserved %s header from public request', OWNER_ID_HEADER)
        request = strip_owner_id_header(request)

        try:
            body = None
            if request.method in ('POST', 'PATCH', 'DELETE'):
                body = await _read_body(request)

            segments = [s for s in path.split('/') if s]
            action = parse_route(segments, request.method, request.query_params, body)
            if action is None:
                return _error_response('Invalid request', 400)

            result = await handle_action(instance, action, request)

            if isinstance(action, OgAction) and og_renderer is not None:
                try:
                    return await _render_og(result, og_renderer)
                except Exception:
                    logger.warning('og render failed; serving preview config as JSON', exc_info=True)

            return JSONResponse(content=to_jsonable(result))
        except ShareableError as exc:
            return _error_response(exc.message, exc.status)
        except Exception:
            logger.exception(
                'unhandled exception method=%s path=%s', request.method, request.url.path,
            )
            return _error_response('Internal server error', 500)

    router.add_api_route(
        f'{mount}/{{path:path}}',
        dispatch,
        methods=['GET', 'POST', 'PATCH', 'DELETE'],
        include_in_schema=False,
    )
    return router
