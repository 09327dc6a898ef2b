"""Definition registry.

A ``Shareable`` instance bundles the integrator's collaborators (storage,
auth, settings) with the registered content types.  Each content type is
declared once with ``define``:

    shareable = Shareable(settings, storage=storage, auth=auth)

    shareable.define(
        'profile',
        fields={
            'bio': FieldDefinition(label='Bio', default=True),
            'earnings': FieldDefinition(label='Earnings', default=False),
            'stats': FieldGroupDefinition(label='Stats', children={
                'breakdown': FieldDefinition(
                    label='Earnings Breakdown', default=True, requires='earnings',
                ),
            }),
        },
        get_data=load_profile,
    )

Definitions are immutable once registered; a duplicate id is a
configuration error and raises immediately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Union

from pydantic import BaseModel

from .auth.base import AuthProvider
from .settings import ShareableSettings
from .storage.base import BaseStorage
from .types import FieldSchema, PreviewConfig, VisibleFields

logger = logging.getLogger(__name__)

GetDataFn = Callable[[str, dict[str, Any]], Union[Any, Awaitable[Any]]]
FilterDataFn = Callable[[Any, VisibleFields], Union[Any, Awaitable[Any]]]
OgImageFn = Callable[
    [Any, VisibleFields, str],
    Union[PreviewConfig, Awaitable[PreviewConfig]],
]


@dataclass(frozen=True, slots=True)
class ShareableDefinition:
    """Registered bundle for one content type.

    Attributes:
        id: Content type identifier, used in URLs.
        fields: Toggleable field schema.
        get_data: ``(owner_id, params) -> data``; sync or async.
        filter_data: Optional post-filter ``(data, visible_fields) -> data``.
        og_image: Optional ``(data, visible_fields, owner_name) -> PreviewConfig``.
        params_model: Optional pydantic model validating ``params`` on create.
    """

    id: str
    fields: FieldSchema
    get_data: GetDataFn
    filter_data: FilterDataFn | None = None
    og_image: OgImageFn | None = None
    params_model: type[BaseModel] | None = None


class Shareable:
    """Collaborators plus the content types they serve.

    Args:
        settings: Link, token and viewing configuration.
        storage: Share persistence backend.
        auth: Identity resolution backend.
    """

    def __init__(
        self,
        settings: ShareableSettings,
        *,
        storage: BaseStorage,
        auth: AuthProvider,
    ) -> None:
        errors = settings.validate()
        if errors:
            raise ValueError('Invalid shareable settings: ' + '; '.join(errors))
        self.settings = settings
        self.storage = storage
        self.auth = auth
        self._definitions: dict[str, ShareableDefinition] = {}

    @property
    def definitions(self) -> Mapping[str, ShareableDefinition]:
        return MappingProxyType(self._definitions)

    def define(
        self,
        id: str,
        *,
        fields: FieldSchema,
        get_data: GetDataFn,
        filter_data: FilterDataFn | None = None,
        og_image: OgImageFn | None = None,
        params_model: type[BaseModel] | None = None,
    ) -> ShareableDefinition:
        """Register a content type.

        Raises:
            ValueError: ``id`` is already registered.
        """
        if id in self._definitions:
            raise ValueError(f'Shareable {id!r} is already defined.')

        definition = ShareableDefinition(
            id=id,
            fields=MappingProxyType(dict(fields)),
            get_data=get_data,
            filter_data=filter_data,
            og_image=og_image,
            params_model=params_model,
        )
        self._definitions[id] = definition
        logger.debug('shareable defined id=%s fields=%d', id, len(definition.fields))
        return definition

    def get_definition(self, id: str) -> ShareableDefinition | None:
        return self._definitions.get(id)
