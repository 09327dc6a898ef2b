"""Page metadata for shared links (title, description, preview image URL).

Used by hosts that render the public share page server-side and need
``<meta property="og:...">`` values without going through HTTP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..actions import OgAction
from ..dispatcher import handle_action, is_expired
from ..registry import Shareable
from ..token import validate_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ShareMeta:
    title: str
    og_image_url: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {'title': self.title, 'ogImageUrl': self.og_image_url}
        if self.description is not None:
            out['description'] = self.description
        return out


async def get_share_meta(instance: Shareable, type: str, token: str) -> ShareMeta | None:
    """Return metadata for ``token``, or None when the link is not viewable.

    None covers a malformed token, a missing or expired share, an
    unregistered type, and any failure while building the preview.
    """
    if not validate_token(token):
        return None

    share = await instance.storage.get_share(token)
    if share is None or is_expired(share):
        return None

    definition = instance.get_definition(share.type)
    if definition is None:
        return None

    if definition.og_image is None:
        return ShareMeta(title=f'Shared {type}', og_image_url='')

    try:
        preview = await handle_action(instance, OgAction(token=token))
    except Exception:
        logger.warning('share meta preview failed type=%s', type, exc_info=True)
        return None

    settings = instance.settings
    prefix = settings.api_prefix.rstrip('/')
    return ShareMeta(
        title=preview.title,
        description=preview.subtitle,
        og_image_url=f'{settings.normalized_base_url}{prefix}/{type}/{token}/og',
    )
