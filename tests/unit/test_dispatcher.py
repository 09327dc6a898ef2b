"""Tests for the action dispatcher.

Validates:
  - create: auth, unknown type, params validation, expiresAt parsing, resolved visibility.
  - list / get / revoke / update ownership and status codes.
  - view: token shape, expiry, view counting, filtering, owner name.
  - og: preview configuration and missing preview function.
  - analytics: storage-native vs derived.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel
from starlette.requests import Request

from shareable import (
    AnalyticsAction,
    CreateAction,
    FieldDefinition,
    GetAction,
    ListAction,
    OgAction,
    PreviewConfig,
    PreviewMetric,
    RevokeAction,
    Shareable,
    ShareableError,
    ShareableSettings,
    ShareableUser,
    SharedViewData,
    UpdateAction,
    ViewAction,
    handle_action,
)
from shareable.auth import StaticAuthProvider
from shareable.storage import InMemoryShareStorage, StorageCapability
from shareable.types import CreateShareInput, ShareAnalyticsData


# ── Test helpers ──────────────────────────────────────────────────────


def _request(headers: dict[str, str] | None = None) -> Request:
    return Request({
        'type': 'http',
        'method': 'GET',
        'path': '/',
        'query_string': b'',
        'headers': [
            (k.lower().encode('latin-1'), v.encode('latin-1'))
            for k, v in (headers or {}).items()
        ],
    })


async def _create(instance: Shareable, **overrides) -> dict:
    action = CreateAction(
        type=overrides.pop('type', 'profile'),
        visible_fields=overrides.pop('visible_fields', {'bio': True, 'earnings': False}),
        params=overrides.pop('params', {}),
        **overrides,
    )
    return await handle_action(instance, action, _request())


async def _expect_error(coro, status: int) -> ShareableError:
    with pytest.raises(ShareableError) as exc_info:
        await coro
    assert exc_info.value.status == status
    return exc_info.value


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


# =====================================================================
# create
# =====================================================================


class TestCreate:

    @pytest.mark.asyncio
    async def test_create_returns_share_and_url(self, instance):
        result = await _create(instance)

        share = result['share']
        assert share.type == 'profile'
        assert share.owner_id == 'user_1'
        assert share.view_count == 0
        assert len(share.token) == 12
        assert result['url'] == f'https://app.example.com/shared/profile/{share.token}'

    @pytest.mark.asyncio
    async def test_create_stores_resolved_visibility(self, instance):
        result = await _create(
            instance,
            visible_fields={'earnings': False, 'stats.breakdown': True, 'bogus': True},
        )
        assert result['share'].visible_fields == {
            'bio': True,
            'earnings': False,
            'stats.views': True,
            'stats.breakdown': False,
        }

    @pytest.mark.asyncio
    async def test_create_unknown_type_400(self, instance):
        err = await _expect_error(_create(instance, type='nope'), 400)
        assert err.message == 'Unknown shareable type: nope'

    @pytest.mark.asyncio
    async def test_create_without_identity_401(self, instance):
        action = CreateAction(type='profile')
        err = await _expect_error(handle_action(instance, action, None), 401)
        assert err.message == 'Authentication required'

    @pytest.mark.asyncio
    async def test_create_anonymous_request_401(self, settings, storage):
        shareable = Shareable(settings, storage=storage, auth=StaticAuthProvider(user=None))
        shareable.define('profile', fields={}, get_data=lambda owner_id, params: {})
        await _expect_error(
            handle_action(shareable, CreateAction(type='profile'), _request()), 401,
        )

    @pytest.mark.asyncio
    async def test_create_with_expiry(self, instance):
        expires = _iso(timedelta(days=1))
        result = await _create(instance, expires_at=expires)
        assert result['share'].expires_at == datetime.fromisoformat(expires)

    @pytest.mark.asyncio
    async def test_create_invalid_expiry_400(self, instance):
        await _expect_error(_create(instance, expires_at='next tuesday'), 400)

    @pytest.mark.asyncio
    async def test_create_respects_token_length(self, storage, auth):
        shareable = Shareable(
            ShareableSettings(base_url='https://x.test', token_length=20),
            storage=storage,
            auth=auth,
        )
        shareable.define('profile', fields={}, get_data=lambda owner_id, params: {})
        result = await _create(shareable, visible_fields={})
        assert len(result['share'].token) == 20

    @pytest.mark.asyncio
    async def test_params_model_validates_and_normalizes(self, instance):
        class ProjectParams(BaseModel):
            project_id: int

        instance.define(
            'project',
            fields={'name': FieldDefinition(label='Name', default=True)},
            get_data=lambda owner_id, params: {'name': 'x'},
            params_model=ProjectParams,
        )

        result = await _create(instance, type='project', params={'project_id': '7'})
        assert result['share'].params == {'project_id': 7}

        err = await _expect_error(
            _create(instance, type='project', params={'project_id': 'seven'}), 400,
        )
        assert 'project' in err.message


# =====================================================================
# list / get / revoke
# =====================================================================


class TestListGetRevoke:

    @pytest.mark.asyncio
    async def test_list_returns_only_callers_shares(self, instance, storage):
        await _create(instance)
        await storage.create_share(CreateShareInput(
            type='profile', token='0123456789ab', owner_id='someone_else',
            params={}, visible_fields={},
        ))

        result = await handle_action(instance, ListAction(), _request())
        assert [s.owner_id for s in result['shares']] == ['user_1']

    @pytest.mark.asyncio
    async def test_list_filters_by_type_and_params(self, instance):
        instance.define('post', fields={}, get_data=lambda owner_id, params: {})
        await _create(instance, params={'slug': 'a'})
        await _create(instance, params={'slug': 'b'})
        await _create(instance, type='post', visible_fields={})

        by_type = await handle_action(instance, ListAction(type='post'), _request())
        assert [s.type for s in by_type['shares']] == ['post']

        by_params = await handle_action(
            instance, ListAction(type='profile', params={'slug': 'b'}), _request(),
        )
        assert [s.params for s in by_params['shares']] == [{'slug': 'b'}]

    @pytest.mark.asyncio
    async def test_list_requires_identity(self, instance):
        await _expect_error(handle_action(instance, ListAction(), None), 401)

    @pytest.mark.asyncio
    async def test_get_returns_share(self, instance):
        created = (await _create(instance))['share']
        result = await handle_action(instance, GetAction(token=created.token))
        assert result['share'].id == created.id

    @pytest.mark.asyncio
    async def test_get_bad_token_400(self, instance):
        err = await _expect_error(handle_action(instance, GetAction(token='bad')), 400)
        assert err.message == 'Invalid share token'

    @pytest.mark.asyncio
    async def test_get_missing_404(self, instance):
        await _expect_error(handle_action(instance, GetAction(token='abcdef123456')), 404)

    @pytest.mark.asyncio
    async def test_get_expired_410(self, instance, storage):
        share = await storage.create_share(CreateShareInput(
            type='profile', token='abcdef123456', owner_id='user_1', params={},
            visible_fields={}, expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
        ))
        err = await _expect_error(handle_action(instance, GetAction(token=share.token)), 410)
        assert err.message == 'Share has expired'

    @pytest.mark.asyncio
    async def test_revoke_then_get_404(self, instance):
        share = (await _create(instance))['share']

        result = await handle_action(instance, RevokeAction(share_id=share.id), _request())
        assert result == {'success': True}

        await _expect_error(handle_action(instance, GetAction(token=share.token)), 404)

    @pytest.mark.asyncio
    async def test_revoke_other_owner_is_noop(self, instance, storage):
        other = await storage.create_share(CreateShareInput(
            type='profile', token='abcdef123456', owner_id='someone_else',
            params={}, visible_fields={},
        ))

        result = await handle_action(instance, RevokeAction(share_id=other.id), _request())
        assert result == {'success': True}
        assert await storage.get_share(other.token) is not None

    @pytest.mark.asyncio
    async def test_revoke_requires_identity(self, instance):
        await _expect_error(handle_action(instance, RevokeAction(share_id='x')), 401)


# =====================================================================
# update
# =====================================================================


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_visibility_is_resolved(self, instance):
        share = (await _create(instance))['share']

        result = await handle_action(instance, UpdateAction(
            share_id=share.id,
            type='profile',
            visible_fields={'bio': False, 'earnings': False, 'stats.breakdown': True},
        ), _request())

        assert result['share'].visible_fields['bio'] is False
        assert result['share'].visible_fields['stats.breakdown'] is False

    @pytest.mark.asyncio
    async def test_update_expiry(self, instance):
        share = (await _create(instance))['share']
        expires = _iso(timedelta(hours=2))

        result = await handle_action(
            instance, UpdateAction(share_id=share.id, expires_at=expires), _request(),
        )
        assert result['share'].expires_at == datetime.fromisoformat(expires)

    @pytest.mark.asyncio
    async def test_update_without_capability_501(self, settings, auth):
        shareable = Shareable(
            settings, storage=InMemoryShareStorage(capabilities=()), auth=auth,
        )
        err = await _expect_error(
            handle_action(shareable, UpdateAction(share_id='x'), _request()), 501,
        )
        assert err.message == 'Storage adapter does not support updates'

    @pytest.mark.asyncio
    async def test_update_unknown_share_404(self, instance):
        await _expect_error(
            handle_action(instance, UpdateAction(share_id='missing'), _request()), 404,
        )

    @pytest.mark.asyncio
    async def test_update_type_mismatch_400(self, instance, storage):
        async def get_doc(owner_id, params):
            return {'title': 'Notes'}

        instance.define(
            'doc', fields={'title': FieldDefinition(label='Title', default=True)},
            get_data=get_doc,
        )
        share = (await _create(instance, visible_fields={'stats.views': False}))['share']

        err = await _expect_error(handle_action(instance, UpdateAction(
            share_id=share.id, type='doc', visible_fields={'title': True},
        ), _request()), 400)

        assert 'Share type mismatch' in err.message
        stored = await storage.get_share(share.token)
        assert stored.visible_fields == share.visible_fields
        view = await handle_action(instance, ViewAction(token=share.token))
        assert 'views' not in view.data['stats']

    @pytest.mark.asyncio
    async def test_update_without_type_uses_stored_schema(self, instance):
        share = (await _create(instance))['share']

        result = await handle_action(instance, UpdateAction(
            share_id=share.id, visible_fields={'stats.views': False},
        ), _request())

        visible = result['share'].visible_fields
        assert set(visible) == set(share.visible_fields)
        assert visible['stats.views'] is False
        assert visible['bio'] is True

    @pytest.mark.asyncio
    async def test_update_visibility_other_owner_404(self, instance, storage):
        other = await storage.create_share(CreateShareInput(
            type='profile', token='abcdef123456', owner_id='someone_else',
            params={}, visible_fields={'earnings': False},
        ))

        await _expect_error(handle_action(instance, UpdateAction(
            share_id=other.id, type='profile', visible_fields={'earnings': True},
        ), _request()), 404)
        assert (await storage.get_share(other.token)).visible_fields == {'earnings': False}

    @pytest.mark.asyncio
    async def test_update_requires_identity(self, instance):
        await _expect_error(handle_action(instance, UpdateAction(share_id='x')), 401)


# =====================================================================
# view
# =====================================================================


class TestView:

    @pytest.mark.asyncio
    async def test_view_filters_data(self, instance):
        share = (await _create(instance, visible_fields={'earnings': False}))['share']

        result = await handle_action(instance, ViewAction(token=share.token))

        assert isinstance(result, SharedViewData)
        assert result.data == {'bio': 'Mathematician', 'stats': {'views': 42}}
        assert result.visible_fields['stats.breakdown'] is False
        assert result.type == 'profile'
        assert result.owner_name == 'Ada'
        assert result.created_at == share.created_at

    @pytest.mark.asyncio
    async def test_view_increments_by_one_per_call(self, instance, storage):
        share = (await _create(instance))['share']

        first = await handle_action(instance, ViewAction(token=share.token))
        second = await handle_action(instance, ViewAction(token=share.token))

        assert first.view_count == 1
        assert second.view_count == 2
        assert (await storage.get_share(share.token)).view_count == 2

    @pytest.mark.asyncio
    async def test_view_tracking_disabled(self, storage, auth):
        shareable = Shareable(
            ShareableSettings(base_url='https://x.test', track_views=False),
            storage=storage,
            auth=auth,
        )
        shareable.define('profile', fields={}, get_data=lambda owner_id, params: {})
        share = (await _create(shareable, visible_fields={}))['share']

        result = await handle_action(shareable, ViewAction(token=share.token))

        assert result.view_count == 0
        assert (await storage.get_share(share.token)).view_count == 0

    @pytest.mark.asyncio
    async def test_view_bad_token_400(self, instance):
        await _expect_error(handle_action(instance, ViewAction(token='bad')), 400)

    @pytest.mark.asyncio
    async def test_view_missing_404(self, instance):
        await _expect_error(handle_action(instance, ViewAction(token='abcdef123456')), 404)

    @pytest.mark.asyncio
    async def test_view_expired_410_does_not_count(self, instance, storage):
        share = await storage.create_share(CreateShareInput(
            type='profile', token='abcdef123456', owner_id='user_1', params={},
            visible_fields={}, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        ))
        await _expect_error(handle_action(instance, ViewAction(token=share.token)), 410)
        assert (await storage.get_share(share.token)).view_count == 0

    @pytest.mark.asyncio
    async def test_view_unregistered_type_500(self, instance, storage):
        share = await storage.create_share(CreateShareInput(
            type='ghost', token='abcdef123456', owner_id='user_1',
            params={}, visible_fields={},
        ))
        err = await _expect_error(handle_action(instance, ViewAction(token=share.token)), 500)
        assert err.message == 'Unknown shareable type: ghost'

    @pytest.mark.asyncio
    async def test_view_passes_owner_and_params_to_get_data(self, instance):
        seen = {}

        def get_data(owner_id, params):
            seen['args'] = (owner_id, params)
            return {'title': 'T'}

        instance.define('doc', fields={}, get_data=get_data)
        share = (await _create(instance, type='doc', visible_fields={}, params={'id': 3}))['share']

        await handle_action(instance, ViewAction(token=share.token))
        assert seen['args'] == ('user_1', {'id': 3})

    @pytest.mark.asyncio
    async def test_view_applies_post_filter(self, instance):
        async def redact(data, visible):
            return {**data, 'bio': data['bio'].upper()}

        instance.define(
            'loud',
            fields={'bio': FieldDefinition(label='Bio', default=True)},
            get_data=lambda owner_id, params: {'bio': 'quiet', 'hidden': 1},
            filter_data=redact,
        )
        share = (await _create(instance, type='loud', visible_fields={'bio': True}))['share']

        result = await handle_action(instance, ViewAction(token=share.token))
        assert result.data['bio'] == 'QUIET'

    @pytest.mark.asyncio
    async def test_get_data_failure_propagates(self, instance):
        def boom(owner_id, params):
            raise RuntimeError('backend down')

        instance.define('broken', fields={}, get_data=boom)
        share = (await _create(instance, type='broken', visible_fields={}))['share']

        with pytest.raises(RuntimeError, match='backend down'):
            await handle_action(instance, ViewAction(token=share.token))

    @pytest.mark.asyncio
    async def test_get_data_timeout(self, storage, auth):
        shareable = Shareable(
            ShareableSettings(base_url='https://x.test', collaborator_timeout_seconds=0.01),
            storage=storage,
            auth=auth,
        )

        async def slow(owner_id, params):
            await asyncio.sleep(1)
            return {}

        shareable.define('slow', fields={}, get_data=slow)
        share = (await _create(shareable, type='slow', visible_fields={}))['share']

        with pytest.raises(asyncio.TimeoutError):
            await handle_action(shareable, ViewAction(token=share.token))


class TestOwnerName:

    async def _view_owner_name(self, owner_display: str, names: dict, storage) -> str:
        shareable = Shareable(
            ShareableSettings(base_url='https://x.test', owner_display=owner_display),
            storage=storage,
            auth=StaticAuthProvider(user=ShareableUser(id='user_1'), names=names),
        )
        shareable.define('profile', fields={}, get_data=lambda owner_id, params: {})
        share = (await _create(shareable, visible_fields={}))['share']
        result = await handle_action(shareable, ViewAction(token=share.token))
        return result.owner_name

    @pytest.mark.asyncio
    async def test_first_name(self, storage):
        name = await self._view_owner_name('first-name', {'user_1': 'Ada Lovelace'}, storage)
        assert name == 'Ada'

    @pytest.mark.asyncio
    async def test_full(self, storage):
        name = await self._view_owner_name('full', {'user_1': 'Ada Lovelace'}, storage)
        assert name == 'Ada Lovelace'

    @pytest.mark.asyncio
    async def test_anonymous(self, storage):
        name = await self._view_owner_name('anonymous', {'user_1': 'Ada Lovelace'}, storage)
        assert name == 'Someone'

    @pytest.mark.asyncio
    async def test_missing_name(self, storage):
        assert await self._view_owner_name('full', {}, storage) == 'Someone'

    @pytest.mark.asyncio
    async def test_lookup_failure_does_not_fail_view(self, settings, storage):
        class FlakyAuth:
            async def get_user(self, request):
                if request is not None and request.headers.get('x-shareable-owner-id'):
                    raise ConnectionError('auth service down')
                return ShareableUser(id='user_1')

        shareable = Shareable(settings, storage=storage, auth=FlakyAuth())
        shareable.define('profile', fields={}, get_data=lambda owner_id, params: {'a': 1})
        share = (await _create(shareable, visible_fields={}))['share']

        result = await handle_action(shareable, ViewAction(token=share.token))
        assert result.owner_name == 'Someone'
        assert result.data == {'a': 1}


# =====================================================================
# og
# =====================================================================


class TestOg:

    @pytest.mark.asyncio
    async def test_og_returns_preview_config(self, instance):
        seen = {}

        def og_image(data, visible, owner_name):
            seen['data'] = data
            return PreviewConfig(
                title=f"{owner_name}'s profile",
                subtitle=data.get('bio'),
                metrics=(PreviewMetric(label='Views', value=str(data['stats']['views'])),),
            )

        instance.define(
            'card',
            fields=instance.get_definition('profile').fields,
            get_data=lambda owner_id, params: {
                'bio': 'Mathematician', 'earnings': 5, 'stats': {'views': 9},
            },
            og_image=og_image,
        )
        share = (await _create(instance, type='card', visible_fields={'earnings': False}))['share']

        preview = await handle_action(instance, OgAction(token=share.token))

        assert preview.title == "Ada's profile"
        assert preview.subtitle == 'Mathematician'
        assert preview.metrics[0].value == '9'
        assert 'earnings' not in seen['data']

    @pytest.mark.asyncio
    async def test_og_does_not_count_views(self, instance, storage):
        instance.define(
            'card', fields={}, get_data=lambda owner_id, params: {},
            og_image=lambda data, visible, owner_name: PreviewConfig(title='t'),
        )
        share = (await _create(instance, type='card', visible_fields={}))['share']

        await handle_action(instance, OgAction(token=share.token))
        assert (await storage.get_share(share.token)).view_count == 0

    @pytest.mark.asyncio
    async def test_og_not_configured_404(self, instance):
        share = (await _create(instance))['share']
        err = await _expect_error(handle_action(instance, OgAction(token=share.token)), 404)
        assert err.message == 'OG image not configured'

    @pytest.mark.asyncio
    async def test_og_bad_token_400(self, instance):
        await _expect_error(handle_action(instance, OgAction(token='bad')), 400)


# =====================================================================
# analytics
# =====================================================================


class TestAnalytics:

    @pytest.mark.asyncio
    async def test_derived_analytics(self, instance):
        a = (await _create(instance))['share']
        b = (await _create(instance))['share']
        for _ in range(3):
            await handle_action(instance, ViewAction(token=b.token))
        await handle_action(instance, ViewAction(token=a.token))

        result = await handle_action(instance, AnalyticsAction(), _request())

        assert isinstance(result, ShareAnalyticsData)
        assert result.total_shares == 2
        assert result.total_views == 4
        assert [(t.type, t.count, t.views) for t in result.shares_by_type] == [('profile', 2, 4)]
        assert [(r.share.id, r.rank) for r in result.top_shares] == [(b.id, 1), (a.id, 2)]

    @pytest.mark.asyncio
    async def test_storage_native_analytics_used(self, settings, auth):
        storage = InMemoryShareStorage(
            capabilities={StorageCapability.UPDATE, StorageCapability.ANALYTICS},
        )
        calls = []
        native = ShareAnalyticsData(total_shares=99, total_views=0)

        async def get_analytics(owner_id, type=None):
            calls.append((owner_id, type))
            return native

        storage.get_analytics = get_analytics
        shareable = Shareable(settings, storage=storage, auth=auth)

        result = await handle_action(shareable, AnalyticsAction(type='profile'), _request())
        assert result is native
        assert calls == [('user_1', 'profile')]

    @pytest.mark.asyncio
    async def test_analytics_requires_identity(self, instance):
        await _expect_error(handle_action(instance, AnalyticsAction()), 401)


class TestDispatch:

    @pytest.mark.asyncio
    async def test_unknown_action_type_rejected(self, instance):
        with pytest.raises(TypeError):
            await handle_action(instance, object())
