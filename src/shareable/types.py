"""Core record types for shareable content.

Field schemas are plain declarative data: a schema maps keys to either a
single toggleable field or a named group of fields.  Everything the privacy
engine and dispatcher exchange with storage is expressed with the dataclasses
below.

This module provides:
  1. ``FieldDefinition`` / ``FieldGroupDefinition`` / ``FieldSchema``.
  2. ``Share`` / ``CreateShareInput`` / ``ShareUpdate``: storage records.
  3. ``ShareableUser``: identity returned by an auth provider.
  4. ``PreviewConfig`` / ``PreviewMetric``: preview image payload.
  5. ``SharedViewData`` / ``ShareAnalyticsData``: action results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Union

VisibleFields = dict[str, bool]


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ── Field schema ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class FieldDefinition:
    """A single toggleable unit of shared data.

    Attributes:
        label: Human-readable name shown in the share UI.
        default: Whether the field is visible on a new share.
        requires: Top-level path that must be visible for this field.
        description: Optional help text.
    """

    label: str
    default: bool
    requires: str | None = None
    description: str | None = None


@dataclass(frozen=True, slots=True)
class FieldGroupDefinition:
    """A named cluster of fields addressed as ``group.child``."""

    label: str
    children: Mapping[str, FieldDefinition] = field(default_factory=dict)


FieldSchema = Mapping[str, Union[FieldDefinition, FieldGroupDefinition]]


# ── Storage records ──────────────────────────────────────────────────


@dataclass
class Share:
    """Persisted, tokenized grant of filtered access to one owner's data.

    Attributes:
        id: Storage-assigned identity.
        type: Shareable definition id.
        token: Opaque lowercase-hex token used in public URLs.
        owner_id: User who created the share.
        params: Definition-specific parameters passed to ``get_data``.
        visible_fields: Resolved visibility map stored at create/update time.
        view_count: Number of tracked views.
        created_at: Creation timestamp (aware, UTC).
        expires_at: When the share lapses (None = never).
    """

    id: str
    type: str
    token: str
    owner_id: str
    params: dict[str, Any] = field(default_factory=dict)
    visible_fields: VisibleFields = field(default_factory=dict)
    view_count: int = 0
    created_at: datetime | None = None
    expires_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'type': self.type,
            'token': self.token,
            'ownerId': self.owner_id,
            'params': dict(self.params),
            'visibleFields': dict(self.visible_fields),
            'viewCount': self.view_count,
            'createdAt': _isoformat(self.created_at),
            'expiresAt': _isoformat(self.expires_at),
        }


@dataclass(frozen=True, slots=True)
class CreateShareInput:
    """Fields needed to persist a new share (id/view_count/created_at are storage-assigned)."""

    type: str
    token: str
    owner_id: str
    params: dict[str, Any]
    visible_fields: VisibleFields
    expires_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ShareUpdate:
    """Partial update applied by ``update_share``; None means unchanged."""

    visible_fields: VisibleFields | None = None
    expires_at: datetime | None = None

    def is_empty(self) -> bool:
        return self.visible_fields is None and self.expires_at is None


@dataclass(frozen=True, slots=True)
class ShareFilter:
    """Sub-match on share params: every key/value must be present."""

    params: Mapping[str, Any] = field(default_factory=dict)

    def matches(self, share: Share) -> bool:
        return all(
            key in share.params and share.params[key] == value
            for key, value in self.params.items()
        )


# ── Identity ─────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareableUser:
    id: str
    name: str | None = None


# ── Preview ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class PreviewMetric:
    label: str
    value: str


@dataclass(frozen=True, slots=True)
class PreviewConfig:
    """Title/subtitle/metrics payload consumed by a preview image renderer."""

    title: str
    subtitle: str | None = None
    metrics: tuple[PreviewMetric, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {'title': self.title}
        if self.subtitle is not None:
            payload['subtitle'] = self.subtitle
        if self.metrics:
            payload['metrics'] = [
                {'label': m.label, 'value': m.value} for m in self.metrics
            ]
        return payload


# ── Action results ───────────────────────────────────────────────────


@dataclass
class SharedViewData:
    data: Any
    visible_fields: VisibleFields
    owner_name: str
    view_count: int
    type: str
    created_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            'data': self.data,
            'visibleFields': dict(self.visible_fields),
            'ownerName': self.owner_name,
            'viewCount': self.view_count,
            'type': self.type,
            'createdAt': _isoformat(self.created_at),
        }


@dataclass(frozen=True, slots=True)
class TypeBreakdown:
    type: str
    count: int
    views: int


@dataclass(frozen=True, slots=True)
class RankedShare:
    share: Share
    rank: int

    def to_dict(self) -> dict[str, Any]:
        return {**self.share.to_dict(), 'rank': self.rank}


@dataclass
class ShareAnalyticsData:
    total_shares: int
    total_views: int
    shares_by_type: list[TypeBreakdown] = field(default_factory=list)
    top_shares: list[RankedShare] = field(default_factory=list)
    recent_activity: list[Share] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            'totalShares': self.total_shares,
            'totalViews': self.total_views,
            'sharesByType': [
                {'type': t.type, 'count': t.count, 'views': t.views}
                for t in self.shares_by_type
            ],
            'topShares': [s.to_dict() for s in self.top_shares],
            'recentActivity': [s.to_dict() for s in self.recent_activity],
        }
