"""The single error type raised deliberately by the dispatcher."""

from __future__ import annotations


class ShareableError(Exception):
    """Action precondition failure carrying an HTTP-style status.

    Attributes:
        message: Human-readable reason, safe to show to callers.
        status: HTTP status code adapters respond with.
    """

    def __init__(self, message: str, status: int) -> None:
        self.message = message
        self.status = status
        super().__init__(message)

    def __repr__(self) -> str:
        return f'ShareableError({self.message!r}, status={self.status})'

    def to_dict(self) -> dict[str, str]:
        return {'error': self.message}
