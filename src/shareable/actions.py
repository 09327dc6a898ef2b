"""Normalized actions accepted by the dispatcher.

``ShareableAction`` is a closed union: one frozen dataclass per action kind,
each carrying only the fields that action needs.  Adding a kind means adding
a class here and a handler in ``dispatcher._HANDLERS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .types import VisibleFields


@dataclass(frozen=True, slots=True)
class CreateAction:
    type: str
    visible_fields: VisibleFields = field(default_factory=dict)
    params: dict[str, Any] = field(default_factory=dict)
    expires_at: str | None = None
    """ISO-8601 timestamp; None means the share never expires."""

    kind = 'create'


@dataclass(frozen=True, slots=True)
class ListAction:
    type: str | None = None
    params: dict[str, Any] | None = None

    kind = 'list'


@dataclass(frozen=True, slots=True)
class GetAction:
    token: str

    kind = 'get'


@dataclass(frozen=True, slots=True)
class RevokeAction:
    share_id: str

    kind = 'revoke'


@dataclass(frozen=True, slots=True)
class UpdateAction:
    share_id: str
    type: str | None = None
    visible_fields: VisibleFields | None = None
    expires_at: str | None = None

    kind = 'update'


@dataclass(frozen=True, slots=True)
class ViewAction:
    token: str

    kind = 'view'


@dataclass(frozen=True, slots=True)
class OgAction:
    token: str

    kind = 'og'


@dataclass(frozen=True, slots=True)
class AnalyticsAction:
    type: str | None = None

    kind = 'analytics'


ShareableAction = Union[
    CreateAction,
    ListAction,
    GetAction,
    RevokeAction,
    UpdateAction,
    ViewAction,
    OgAction,
    AnalyticsAction,
]
