"""HTTP surface: FastAPI router and page metadata helpers."""

from .metadata import ShareMeta, get_share_meta
from .routes import create_shareable_router, parse_route, to_jsonable

__all__ = [
    'ShareMeta',
    'create_shareable_router',
    'get_share_meta',
    'parse_route',
    'to_jsonable',
]
