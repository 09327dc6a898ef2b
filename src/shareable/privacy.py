"""Privacy resolution engine.

Pure functions over a ``FieldSchema`` and a visibility map:

  - ``flatten_schema``: canonical, declaration-ordered list of fields.
  - ``get_defaults`` / ``get_groups`` / ``get_toggle_config``: schema views.
  - ``resolve_dependencies``: cap dependent fields by their requirement.
  - ``get_dependency_warnings``: actionable hints before resolution hides a field.
  - ``filter_data``: drop hidden keys from a data payload.

Dependency resolution is a single, non-transitive pass: every decision reads
the caller's input map, never a value resolved earlier in the same call.
With ``c requires b requires a`` and ``a`` hidden, ``b`` is hidden but ``c``
still sees the input value of ``b``.

None of these functions mutate their arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from .types import FieldGroupDefinition, FieldSchema, VisibleFields

GROUP_SEPARATOR = '.'


@dataclass(frozen=True, slots=True)
class FlatField:
    path: str
    label: str
    default_visible: bool
    requires: str | None = None
    group: str | None = None


@dataclass(frozen=True, slots=True)
class FieldGroup:
    key: str
    label: str
    children: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class DependencyWarning:
    field: str
    requires: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {'field': self.field, 'requires': self.requires, 'message': self.message}


@dataclass(frozen=True, slots=True)
class ToggleItem:
    path: str
    label: str
    default_visible: bool
    type: str  # 'field' | 'group'
    requires: str | None = None
    children: tuple[ToggleItem, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        item: dict[str, Any] = {
            'path': self.path,
            'label': self.label,
            'defaultVisible': self.default_visible,
            'type': self.type,
        }
        if self.requires is not None:
            item['requires'] = self.requires
        if self.type == 'group':
            item['children'] = [c.to_dict() for c in self.children]
        return item


def _child_path(group_key: str, child_key: str) -> str:
    return f'{group_key}{GROUP_SEPARATOR}{child_key}'


# ── Schema views ─────────────────────────────────────────────────────


def flatten_schema(schema: FieldSchema) -> list[FlatField]:
    """Flatten a schema into dot-path fields, in declaration order.

    ``{'stats': Group(children={'views': ...})}`` becomes
    ``[FlatField(path='stats.views', group='stats', ...)]``.
    """
    result: list[FlatField] = []
    for key, entry in schema.items():
        if isinstance(entry, FieldGroupDefinition):
            for child_key, child in entry.children.items():
                result.append(FlatField(
                    path=_child_path(key, child_key),
                    label=child.label,
                    default_visible=child.default,
                    requires=child.requires,
                    group=key,
                ))
        else:
            result.append(FlatField(
                path=key,
                label=entry.label,
                default_visible=entry.default,
                requires=entry.requires,
            ))
    return result


def get_defaults(schema: FieldSchema) -> VisibleFields:
    """Default visibility for every flattened field (no dependency resolution)."""
    return {f.path: f.default_visible for f in flatten_schema(schema)}


def get_groups(schema: FieldSchema) -> list[FieldGroup]:
    """Groups declared in the schema, with their child paths. UI-only."""
    return [
        FieldGroup(
            key=key,
            label=entry.label,
            children=tuple(_child_path(key, c) for c in entry.children),
        )
        for key, entry in schema.items()
        if isinstance(entry, FieldGroupDefinition)
    ]


def get_toggle_config(schema: FieldSchema) -> list[ToggleItem]:
    """Tree-shaped toggle configuration for a share UI.

    A group is visible by default only when all of its children are.
    """
    items: list[ToggleItem] = []
    for key, entry in schema.items():
        if isinstance(entry, FieldGroupDefinition):
            children = tuple(
                ToggleItem(
                    path=_child_path(key, child_key),
                    label=child.label,
                    default_visible=child.default,
                    type='field',
                    requires=child.requires,
                )
                for child_key, child in entry.children.items()
            )
            items.append(ToggleItem(
                path=key,
                label=entry.label,
                default_visible=all(c.default_visible for c in children),
                type='group',
                children=children,
            ))
        else:
            items.append(ToggleItem(
                path=key,
                label=entry.label,
                default_visible=entry.default,
                type='field',
                requires=entry.requires,
            ))
    return items


# ── Resolution ───────────────────────────────────────────────────────


def resolve_dependencies(
    visible_fields: Mapping[str, bool],
    schema: FieldSchema,
) -> VisibleFields:
    """Hide every field whose requirement is not visible in ``visible_fields``.

    Returns a new map with exactly one entry per flattened schema path.
    Paths absent from the input take the schema default; keys unknown to
    the schema are dropped.  Single pass, not transitive (see module doc).
    """
    resolved: VisibleFields = {}
    for f in flatten_schema(schema):
        if f.requires is not None and not visible_fields.get(f.requires):
            resolved[f.path] = False
        else:
            resolved[f.path] = bool(visible_fields.get(f.path, f.default_visible))
    return resolved


def get_dependency_warnings(
    visible_fields: Mapping[str, bool],
    schema: FieldSchema,
) -> list[DependencyWarning]:
    """One warning per visible field whose requirement is hidden.

    E.g. ``Enable 'Earnings' to include 'Earnings Breakdown'``.
    """
    flat = flatten_schema(schema)
    labels = {f.path: f.label for f in flat}
    warnings: list[DependencyWarning] = []
    for f in flat:
        if f.requires is None:
            continue
        if visible_fields.get(f.path) and not visible_fields.get(f.requires):
            required_label = labels.get(f.requires, f.requires)
            warnings.append(DependencyWarning(
                field=f.path,
                requires=f.requires,
                message=f"Enable '{required_label}' to include '{f.label}'",
            ))
    return warnings


# ── Data filtering ───────────────────────────────────────────────────


def filter_data(data: Any, visible_fields: Mapping[str, bool]) -> Any:
    """Remove hidden keys from ``data``.

    One-segment paths drop the top-level key.  Two-segment paths drop only
    the child key inside the parent dict; the parent itself is kept.
    Non-dict input is returned unchanged.  Each touched level is a shallow
    copy, so the caller's object is never modified.
    """
    if not isinstance(data, dict):
        return data

    result = dict(data)
    for path, visible in visible_fields.items():
        if visible:
            continue
        parts = path.split(GROUP_SEPARATOR)
        if len(parts) == 1:
            result.pop(parts[0], None)
        elif len(parts) == 2:
            parent, child = parts
            nested = result.get(parent)
            if isinstance(nested, dict):
                nested = dict(nested)
                nested.pop(child, None)
                result[parent] = nested
    return result
