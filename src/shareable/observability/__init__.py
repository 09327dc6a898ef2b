"""Observability helpers: structured logging and request-id correlation.

Quick start::

    from shareable.observability import configure_logging

    configure_logging()
"""

from .logging import (
    REQUEST_ID_HEADER,
    configure_logging,
    get_logger,
    request_id_ctx,
    resolve_request_id,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "configure_logging",
    "get_logger",
    "request_id_ctx",
    "resolve_request_id",
]
