"""Auth provider contract and the internal owner-lookup side channel.

The dispatcher resolves a share owner's display name by asking the auth
provider about a user other than the caller.  It does so with an
``OwnerLookupRequest`` carrying the reserved ``x-shareable-owner-id``
header.  Auth providers must call ``check_owner_id_header`` first and return
its result verbatim when it is not None.

Trust boundary:
  The header is honoured only on ``OwnerLookupRequest`` instances, which are
  built in-process by ``owner_lookup_request``.  The same header on a request
  that arrived over the network is ignored here and stripped by the HTTP
  adapter, so a public caller can never impersonate an owner through it.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from starlette.requests import Request

from ..types import ShareableUser

OWNER_ID_HEADER = 'x-shareable-owner-id'

_INTERNAL_HOST = 'internal'


class OwnerLookupRequest(Request):
    """Synthetic request used only for server-side owner-name lookups."""

    @property
    def owner_id(self) -> str | None:
        return self.headers.get(OWNER_ID_HEADER) or None


@runtime_checkable
class AuthProvider(Protocol):
    """Resolve the identity behind a request.

    Returns None when the request carries no (valid) identity.
    """

    async def get_user(self, request: Request) -> ShareableUser | None: ...


def owner_lookup_request(owner_id: str) -> OwnerLookupRequest:
    """Build the internal request the dispatcher hands to ``get_user``."""
    scope = {
        'type': 'http',
        'method': 'GET',
        'scheme': 'http',
        'server': (_INTERNAL_HOST, 80),
        'path': '/',
        'raw_path': b'/',
        'query_string': b'',
        'headers': [(OWNER_ID_HEADER.encode('latin-1'), owner_id.encode('utf-8'))],
    }
    return OwnerLookupRequest(scope)


def check_owner_id_header(request: Request | None) -> ShareableUser | None:
    """Short-circuit identity for internal owner lookups.

    Returns ``ShareableUser(id=<owner id>)`` for an ``OwnerLookupRequest``;
    None for every other request, whatever headers it carries.
    """
    if not isinstance(request, OwnerLookupRequest):
        return None
    owner_id = request.owner_id
    return ShareableUser(id=owner_id) if owner_id else None


def strip_owner_id_header(request: Request) -> Request:
    """Return ``request`` without the reserved header (public entry points)."""
    reserved = OWNER_ID_HEADER.encode('latin-1')
    headers = [
        (name, value)
        for name, value in request.scope.get('headers', [])
        if name.lower() != reserved
    ]
    if len(headers) == len(request.scope.get('headers', [])):
        return request
    return Request({**request.scope, 'headers': headers}, receive=request.receive)


class StaticAuthProvider:
    """Fixed identity for local development and tests.

    ``user`` is returned for every public request; ``names`` maps user ids
    to display names for owner lookups.
    """

    def __init__(
        self,
        user: ShareableUser | None = None,
        names: dict[str, str] | None = None,
    ) -> None:
        self._user = user
        self._names = dict(names or {})

    async def get_user(self, request: Request | None) -> ShareableUser | None:
        owner = check_owner_id_header(request)
        if owner is not None:
            return ShareableUser(id=owner.id, name=self._names.get(owner.id))
        if request is None:
            return None
        return self._user
