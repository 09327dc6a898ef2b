"""Privacy-filtered share links.

Register content types with per-field visibility toggles, then serve them
through tokenized public links:

    from shareable import Shareable, ShareableSettings, FieldDefinition
    from shareable.auth import StaticAuthProvider
    from shareable.http import create_shareable_router
    from shareable.storage import InMemoryShareStorage

    shareable = Shareable(
        ShareableSettings(base_url='https://app.example.com'),
        storage=InMemoryShareStorage(),
        auth=StaticAuthProvider(),
    )
    shareable.define('profile', fields={...}, get_data=load_profile)
    app.include_router(create_shareable_router(shareable))
"""

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
from .dispatcher import handle_action, is_expired
from .errors import ShareableError
from .owner import format_owner_name, resolve_owner_name
from .privacy import (
    filter_data,
    flatten_schema,
    get_defaults,
    get_dependency_warnings,
    get_groups,
    get_toggle_config,
    resolve_dependencies,
)
from .registry import Shareable, ShareableDefinition
from .settings import ShareableSettings
from .token import generate_token, validate_token
from .types import (
    FieldDefinition,
    FieldGroupDefinition,
    FieldSchema,
    PreviewConfig,
    PreviewMetric,
    Share,
    ShareAnalyticsData,
    ShareableUser,
    SharedViewData,
    VisibleFields,
)

__all__ = [
    'AnalyticsAction',
    'CreateAction',
    'FieldDefinition',
    'FieldGroupDefinition',
    'FieldSchema',
    'GetAction',
    'ListAction',
    'OgAction',
    'PreviewConfig',
    'PreviewMetric',
    'RevokeAction',
    'Share',
    'ShareAnalyticsData',
    'Shareable',
    'ShareableAction',
    'ShareableDefinition',
    'ShareableError',
    'ShareableSettings',
    'ShareableUser',
    'SharedViewData',
    'UpdateAction',
    'ViewAction',
    'VisibleFields',
    'derive_analytics',
    'filter_data',
    'flatten_schema',
    'format_owner_name',
    'generate_token',
    'get_defaults',
    'get_dependency_warnings',
    'get_groups',
    'get_toggle_config',
    'handle_action',
    'is_expired',
    'resolve_dependencies',
    'resolve_owner_name',
    'validate_token',
]
