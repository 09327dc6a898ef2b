"""Shareable configuration settings.

ShareableSettings is the single configuration object accepted by Shareable().
It is intentionally a plain dataclass (not env-coupled) so tests can inject config
without touching os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

OWNER_DISPLAY_MODES = frozenset({"first-name", "full", "anonymous"})

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class ShareableSettings:
    """Configuration for share creation, viewing and the HTTP adapter.

    All fields except base_url have sensible defaults.
    """

    # ── Links ──────────────────────────────────────────────────────
    base_url: str = ""
    """Public origin used to build share URLs (e.g. https://app.example.com)."""

    api_prefix: str = "/api/shareable"
    """Mount point of the HTTP adapter; also used for preview image URLs."""

    # ── Tokens ─────────────────────────────────────────────────────
    token_length: int = 12
    """Length of generated share tokens. Must be at least 8."""

    # ── Viewing ────────────────────────────────────────────────────
    owner_display: str = "first-name"
    """One of: first-name, full, anonymous."""

    track_views: bool = True
    """Increment view_count on every view action."""

    # ── Collaborators ──────────────────────────────────────────────
    collaborator_timeout_seconds: float | None = None
    """Upper bound for data fetch and owner lookup calls. None = unbounded."""

    @property
    def normalized_base_url(self) -> str:
        return self.base_url.rstrip("/")

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.base_url:
            errors.append("base_url is required")
        if self.token_length < 8:
            errors.append("token_length must be >= 8")
        if self.owner_display not in OWNER_DISPLAY_MODES:
            errors.append(
                f"owner_display must be one of {sorted(OWNER_DISPLAY_MODES)}, "
                f"got {self.owner_display!r}"
            )
        if (
            self.collaborator_timeout_seconds is not None
            and self.collaborator_timeout_seconds <= 0
        ):
            errors.append("collaborator_timeout_seconds must be positive")
        if not self.api_prefix.startswith("/"):
            errors.append("api_prefix must start with '/'")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareableSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareableSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        timeout_raw = env.get("SHAREABLE_COLLABORATOR_TIMEOUT_SECONDS", "").strip()
        track_raw = env.get("SHAREABLE_TRACK_VIEWS", "").strip().lower()

        return cls(
            base_url=env.get("SHAREABLE_BASE_URL", ""),
            api_prefix=env.get("SHAREABLE_API_PREFIX", "/api/shareable"),
            token_length=int(env.get("SHAREABLE_TOKEN_LENGTH", "12")),
            owner_display=env.get("SHAREABLE_OWNER_DISPLAY", "first-name"),
            track_views=track_raw in _TRUTHY if track_raw else True,
            collaborator_timeout_seconds=float(timeout_raw) if timeout_raw else None,
        )
