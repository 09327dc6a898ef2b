"""JWT bearer auth provider.

Validates ``Authorization: Bearer <jwt>`` access tokens by:
  1. Resolving the signing key (static HS256 secret or JWKS for RS256).
  2. Verifying JWT signature, audience, and expiry.
  3. Extracting the identity (``sub`` → user id, ``name`` → display name).

Internal owner lookups (``x-shareable-owner-id``) are answered before any
token handling; see ``shareable.auth.base``.

Configuration:
  - ``jwks_url``: JWKS endpoint (RS256).
  - ``jwt_secret``: Static secret (HS256, local dev only).
  - ``audience``: Expected audience claim (default: ``authenticated``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Protocol

import jwt
from jwt import PyJWKClient, PyJWKClientError
from starlette.requests import Request

from ..types import ShareableUser

from .base import check_owner_id_header

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────

DEFAULT_AUDIENCE = 'authenticated'
JWKS_CACHE_TTL_SECONDS = 300  # 5-minute cache
BEARER_PREFIX = 'Bearer '

NameLookup = Callable[[str], Awaitable[str | None]]

# ── Types ─────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Verified identity extracted from a valid JWT."""

    user_id: str
    name: str | None = None
    raw_claims: dict[str, Any] = field(default_factory=dict)


class TokenVerificationError(Exception):
    """Raised when token verification fails."""

    def __init__(self, code: str, detail: str = '') -> None:
        self.code = code
        self.detail = detail
        super().__init__(f'{code}: {detail}' if detail else code)


# ── Key providers ─────────────────────────────────────────────────────


class KeyProvider(Protocol):
    """Protocol for pluggable signing key resolution."""

    def get_signing_key(self, token: str) -> Any:
        """Return the signing key for the given unverified token."""
        ...


class JWKSKeyProvider:
    """Fetches signing keys from a JWKS endpoint with caching.

    Args:
        jwks_url: Full URL to the JWKS endpoint.
        cache_ttl: Seconds to cache fetched keys.
    """

    def __init__(
        self,
        jwks_url: str,
        cache_ttl: int = JWKS_CACHE_TTL_SECONDS,
    ) -> None:
        self._client = PyJWKClient(
            jwks_url,
            cache_jwk_set=True,
            lifespan=cache_ttl,
        )

    def get_signing_key(self, token: str) -> Any:
        try:
            return self._client.get_signing_key_from_jwt(token).key
        except PyJWKClientError as exc:
            raise TokenVerificationError('jwks_fetch_error', str(exc)) from exc


class StaticKeyProvider:
    """Uses a static secret for HS256 verification (local dev only)."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_signing_key(self, token: str) -> str:
        return self._secret


# ── Token verifier ────────────────────────────────────────────────────


class TokenVerifier:
    """Verifies JWTs and extracts identity claims.

    Args:
        key_provider: A KeyProvider that resolves signing keys.
        audience: Expected ``aud`` claim value.
        algorithms: Accepted JWT algorithms.
    """

    def __init__(
        self,
        key_provider: KeyProvider,
        audience: str = DEFAULT_AUDIENCE,
        algorithms: list[str] | None = None,
    ) -> None:
        self._key_provider = key_provider
        self._audience = audience
        self._algorithms = algorithms or ['RS256']

    def verify(self, token: str) -> TokenClaims:
        """Verify a JWT and return its identity claims.

        Raises:
            TokenVerificationError: On any verification failure.
        """
        if not token or not token.strip():
            raise TokenVerificationError('empty_token')

        try:
            # JWKS lookup parses the token header, so it can raise DecodeError.
            key = self._key_provider.get_signing_key(token)
            claims = jwt.decode(
                token,
                key,
                algorithms=self._algorithms,
                audience=self._audience,
                options={
                    'require': ['sub', 'exp', 'aud'],
                    'verify_exp': True,
                    'verify_aud': True,
                },
            )
        except jwt.ExpiredSignatureError:
            raise TokenVerificationError('token_expired')
        except jwt.InvalidAudienceError:
            raise TokenVerificationError('invalid_audience', f'expected {self._audience}')
        except jwt.DecodeError as exc:
            raise TokenVerificationError('decode_error', str(exc))
        except jwt.InvalidTokenError as exc:
            raise TokenVerificationError('invalid_token', str(exc))

        user_id = claims.get('sub')
        if not user_id:
            raise TokenVerificationError('missing_sub_claim')

        name = claims.get('name')
        return TokenClaims(
            user_id=str(user_id),
            name=name if isinstance(name, str) and name else None,
            raw_claims=claims,
        )


def extract_bearer_token(request: Request) -> str | None:
    """Extract a Bearer token from the Authorization header."""
    auth_header = request.headers.get('authorization', '')
    if auth_header.startswith(BEARER_PREFIX):
        return auth_header[len(BEARER_PREFIX):].strip()
    return None


# ── Provider ─────────────────────────────────────────────────────────


class JwtAuthProvider:
    """AuthProvider backed by bearer JWT verification.

    Args:
        verifier: Configured TokenVerifier.
        name_lookup: Optional coroutine ``user_id -> display name`` used to
            enrich internal owner lookups.  Without it the owner identity is
            returned verbatim (no name).
    """

    def __init__(
        self,
        verifier: TokenVerifier,
        name_lookup: NameLookup | None = None,
    ) -> None:
        self._verifier = verifier
        self._name_lookup = name_lookup

    async def get_user(self, request: Request | None) -> ShareableUser | None:
        owner = check_owner_id_header(request)
        if owner is not None:
            if self._name_lookup is None:
                return owner
            return ShareableUser(id=owner.id, name=await self._name_lookup(owner.id))

        if request is None:
            return None
        token = extract_bearer_token(request)
        if token is None:
            return None
        try:
            claims = self._verifier.verify(token)
        except TokenVerificationError as exc:
            logger.info('bearer token rejected code=%s', exc.code)
            return None
        return ShareableUser(id=claims.user_id, name=claims.name)


def create_jwt_auth_provider(
    *,
    jwks_url: str | None = None,
    jwt_secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
    name_lookup: NameLookup | None = None,
) -> JwtAuthProvider:
    """Create a JwtAuthProvider with the appropriate key provider.

    Prefers JWKS (RS256) when ``jwks_url`` is provided, falls back to a
    static secret (HS256).

    Raises:
        ValueError: If neither URL nor secret is provided.
    """
    if jwks_url:
        verifier = TokenVerifier(JWKSKeyProvider(jwks_url), audience, ['RS256'])
    elif jwt_secret:
        verifier = TokenVerifier(StaticKeyProvider(jwt_secret), audience, ['HS256'])
    else:
        raise ValueError('Either jwks_url (for JWKS) or jwt_secret (for HS256) is required')
    return JwtAuthProvider(verifier, name_lookup=name_lookup)
