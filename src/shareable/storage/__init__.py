"""Share storage contract and reference backends."""

from .base import (
    BaseStorage,
    ExtendedStorage,
    StorageCapability,
    has_capability,
    parse_timestamp,
    row_to_share,
)
from .errors import (
    PostgrestAuthError,
    PostgrestConflictError,
    PostgrestError,
    PostgrestNotFoundError,
)
from .memory import InMemoryShareStorage
from .postgrest import PostgrestShareStorage
from .postgrest_client import PostgrestClient

__all__ = [
    'BaseStorage',
    'ExtendedStorage',
    'InMemoryShareStorage',
    'PostgrestAuthError',
    'PostgrestClient',
    'PostgrestConflictError',
    'PostgrestError',
    'PostgrestNotFoundError',
    'PostgrestShareStorage',
    'StorageCapability',
    'has_capability',
    'parse_timestamp',
    'row_to_share',
]
