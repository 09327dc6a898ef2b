"""Action dispatcher.

``handle_action`` performs exactly one transition per call:

  create    auth → definition → params → resolve → token → storage.create_share
  list      auth → storage.get_shares_by_owner
  get       token shape → storage.get_share → expiry
  revoke    auth → storage.revoke_share (owner scoped)
  update    auth → UPDATE capability → owned share (resolve against its type)
            → storage.update_share (owner scoped)
  view      token shape → lookup → expiry → definition → count view
            → fetch → resolve → filter → post-filter → owner name
  og        token shape → lookup → definition.og_image → fetch/filter → preview
  analytics auth → storage.get_analytics | derive_analytics

There is no state between calls beyond what storage persists.  Precondition
failures raise ``ShareableError``; collaborator exceptions propagate.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from starlette.requests import Request

from .actions import (
    AnalyticsAction,
    CreateAction,
    GetAction,
    ListAction,
    OgAction,
    RevokeAction,
    ShareableAction,
    UpdateAction,
    ViewAction,
)
from .analytics import derive_analytics
from .errors import ShareableError
from .owner import resolve_owner_name
from .privacy import filter_data, resolve_dependencies
from .registry import Shareable, ShareableDefinition
from .storage.base import StorageCapability, has_capability, parse_timestamp
from .token import generate_token, validate_token
from .types import (
    CreateShareInput,
    PreviewConfig,
    Share,
    ShareAnalyticsData,
    ShareableUser,
    SharedViewData,
    ShareFilter,
    ShareUpdate,
    VisibleFields,
)

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _require_user(instance: Shareable, request: Request | None) -> ShareableUser:
    if request is None:
        raise ShareableError('Authentication required', 401)
    user = await instance.auth.get_user(request)
    if user is None:
        raise ShareableError('Authentication required', 401)
    return user


def _require_valid_token(token: str) -> None:
    if not validate_token(token):
        raise ShareableError('Invalid share token', 400)


def is_expired(share: Share, now: datetime | None = None) -> bool:
    if share.expires_at is None:
        return False
    return share.expires_at < (now or datetime.now(timezone.utc))


def _require_not_expired(share: Share) -> None:
    if is_expired(share):
        raise ShareableError('Share has expired', 410)


async def _require_share(instance: Shareable, token: str) -> Share:
    share = await instance.storage.get_share(token)
    if share is None:
        raise ShareableError('Share not found', 404)
    return share


async def _require_owned_share(instance: Shareable, share_id: str, owner_id: str) -> Share:
    for share in await instance.storage.get_shares_by_owner(owner_id):
        if share.id == share_id:
            return share
    raise ShareableError('Share not found', 404)


def _parse_expires_at(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        raise ShareableError(f'Invalid expiresAt: {value!r}', 400)


def _validate_params(definition: ShareableDefinition, params: dict[str, Any]) -> dict[str, Any]:
    if definition.params_model is None:
        return params
    try:
        model = definition.params_model.model_validate(params)
    except ValidationError as exc:
        raise ShareableError(
            f'Invalid params for {definition.id!r}: {exc.error_count()} error(s)', 400,
        )
    return model.model_dump(mode='json')


async def _filtered_data(
    instance: Shareable,
    definition: ShareableDefinition,
    share: Share,
) -> tuple[Any, VisibleFields]:
    timeout = instance.settings.collaborator_timeout_seconds
    raw = await asyncio.wait_for(
        _maybe_await(definition.get_data(share.owner_id, share.params)),
        timeout,
    )

    resolved = resolve_dependencies(share.visible_fields, definition.fields)
    data = filter_data(raw, resolved)
    if definition.filter_data is not None:
        data = await _maybe_await(definition.filter_data(data, resolved))
    return data, resolved


async def _owner_name(instance: Shareable, owner_id: str) -> str:
    return await resolve_owner_name(
        instance.auth,
        owner_id,
        display=instance.settings.owner_display,
        timeout=instance.settings.collaborator_timeout_seconds,
    )


# ── Action handlers ──────────────────────────────────────────────────


async def _handle_create(
    instance: Shareable, action: CreateAction, request: Request | None,
) -> dict[str, Any]:
    user = await _require_user(instance, request)

    definition = instance.get_definition(action.type)
    if definition is None:
        raise ShareableError(f'Unknown shareable type: {action.type}', 400)

    params = _validate_params(definition, dict(action.params))
    expires_at = _parse_expires_at(action.expires_at)
    resolved = resolve_dependencies(action.visible_fields, definition.fields)
    token = generate_token(instance.settings.token_length)

    share = await instance.storage.create_share(CreateShareInput(
        type=action.type,
        token=token,
        owner_id=user.id,
        params=params,
        visible_fields=resolved,
        expires_at=expires_at,
    ))
    logger.info('share created id=%s type=%s owner=%s', share.id, share.type, user.id)

    base_url = instance.settings.normalized_base_url
    return {
        'share': share,
        'url': f'{base_url}/shared/{action.type}/{token}',
    }


async def _handle_list(
    instance: Shareable, action: ListAction, request: Request | None,
) -> dict[str, Any]:
    user = await _require_user(instance, request)
    share_filter = ShareFilter(params=action.params) if action.params else None
    shares = await instance.storage.get_shares_by_owner(user.id, action.type, share_filter)
    return {'shares': shares}


async def _handle_get(
    instance: Shareable, action: GetAction, request: Request | None,
) -> dict[str, Any]:
    _require_valid_token(action.token)
    share = await _require_share(instance, action.token)
    _require_not_expired(share)
    return {'share': share}


async def _handle_revoke(
    instance: Shareable, action: RevokeAction, request: Request | None,
) -> dict[str, Any]:
    user = await _require_user(instance, request)
    await instance.storage.revoke_share(action.share_id, user.id)
    logger.info('share revoked id=%s owner=%s', action.share_id, user.id)
    return {'success': True}


async def _handle_update(
    instance: Shareable, action: UpdateAction, request: Request | None,
) -> dict[str, Any]:
    user = await _require_user(instance, request)

    if not has_capability(instance.storage, StorageCapability.UPDATE):
        raise ShareableError('Storage adapter does not support updates', 501)

    visible_fields = action.visible_fields
    if visible_fields is not None:
        # Resolve against the stored share's schema, never the URL's type.
        current = await _require_owned_share(instance, action.share_id, user.id)
        if action.type is not None and action.type != current.type:
            raise ShareableError(
                f'Share type mismatch: expected {current.type}, got {action.type}', 400,
            )
        definition = instance.get_definition(current.type)
        if definition is None:
            raise ShareableError(f'Unknown shareable type: {current.type}', 500)
        visible_fields = resolve_dependencies(visible_fields, definition.fields)

    update = ShareUpdate(
        visible_fields=dict(visible_fields) if visible_fields is not None else None,
        expires_at=_parse_expires_at(action.expires_at),
    )
    share = await instance.storage.update_share(action.share_id, user.id, update)
    if share is None:
        raise ShareableError('Share not found', 404)
    logger.info('share updated id=%s owner=%s', share.id, user.id)
    return {'share': share}


async def _handle_view(
    instance: Shareable, action: ViewAction, request: Request | None,
) -> SharedViewData:
    _require_valid_token(action.token)
    share = await _require_share(instance, action.token)
    _require_not_expired(share)

    definition = instance.get_definition(share.type)
    if definition is None:
        # Stored type with no registration: registry/data mismatch.
        raise ShareableError(f'Unknown shareable type: {share.type}', 500)

    view_count = share.view_count
    if instance.settings.track_views:
        await instance.storage.increment_view_count(action.token)
        view_count += 1
        logger.debug('share view tracked id=%s views=%d', share.id, view_count)

    data, resolved = await _filtered_data(instance, definition, share)
    owner_name = await _owner_name(instance, share.owner_id)

    return SharedViewData(
        data=data,
        visible_fields=resolved,
        owner_name=owner_name,
        view_count=view_count,
        type=share.type,
        created_at=share.created_at,
    )


async def _handle_og(
    instance: Shareable, action: OgAction, request: Request | None,
) -> PreviewConfig:
    _require_valid_token(action.token)
    share = await _require_share(instance, action.token)

    definition = instance.get_definition(share.type)
    if definition is None or definition.og_image is None:
        raise ShareableError('OG image not configured', 404)

    data, resolved = await _filtered_data(instance, definition, share)
    owner_name = await _owner_name(instance, share.owner_id)
    return await _maybe_await(definition.og_image(data, resolved, owner_name))


async def _handle_analytics(
    instance: Shareable, action: AnalyticsAction, request: Request | None,
) -> ShareAnalyticsData:
    user = await _require_user(instance, request)

    if has_capability(instance.storage, StorageCapability.ANALYTICS):
        return await instance.storage.get_analytics(user.id, action.type)

    shares = await instance.storage.get_shares_by_owner(user.id, action.type)
    return derive_analytics(shares)


_Handler = Callable[[Shareable, Any, 'Request | None'], Awaitable[Any]]

_HANDLERS: dict[type, _Handler] = {
    CreateAction: _handle_create,
    ListAction: _handle_list,
    GetAction: _handle_get,
    RevokeAction: _handle_revoke,
    UpdateAction: _handle_update,
    ViewAction: _handle_view,
    OgAction: _handle_og,
    AnalyticsAction: _handle_analytics,
}


async def handle_action(
    instance: Shareable,
    action: ShareableAction,
    request: Request | None = None,
) -> Any:
    """Run one action against ``instance``.

    Args:
        instance: Registry plus collaborators.
        action: A ``ShareableAction`` variant.
        request: Caller's request, used as identity proof for owner-scoped
            actions.  Public actions (get/view/og) ignore it.

    Returns:
        The action result (dict, ``SharedViewData``, ``PreviewConfig`` or
        ``ShareAnalyticsData``).

    Raises:
        ShareableError: A precondition failed; ``status`` carries the code.
        TypeError: ``action`` is not a ``ShareableAction`` variant.
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f'unsupported action: {type(action).__name__}')
    return await handler(instance, action, request)
