"""Auth provider contract and reference providers."""

from .base import (
    OWNER_ID_HEADER,
    AuthProvider,
    OwnerLookupRequest,
    StaticAuthProvider,
    check_owner_id_header,
    owner_lookup_request,
    strip_owner_id_header,
)
from .jwt_provider import (
    JwtAuthProvider,
    TokenVerificationError,
    TokenVerifier,
    create_jwt_auth_provider,
)

__all__ = [
    'AuthProvider',
    'JwtAuthProvider',
    'OWNER_ID_HEADER',
    'OwnerLookupRequest',
    'StaticAuthProvider',
    'TokenVerificationError',
    'TokenVerifier',
    'check_owner_id_header',
    'create_jwt_auth_provider',
    'owner_lookup_request',
    'strip_owner_id_header',
]
