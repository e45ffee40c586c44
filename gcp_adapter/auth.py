from __future__ import annotations

from fastapi import Request

from vitrine_core.auth.jwt import verify_token
from vitrine_core.auth.types import AuthContext
from vitrine_core.errors import AuthError, UnauthenticatedError

# Cloud Run and API Gateway move the caller's header aside when they add their own.
_AUTH_HEADERS = ("x-forwarded-authorization", "authorization")


def authorize_request(request: Request) -> AuthContext | None:
    """Resolve the caller from the bearer token, if one was sent.

    Returns None without a token so each operation decides whether it needs
    a caller; a token that fails verification is always rejected.
    """
    token = bearer_token(request)
    if token is None:
        return None
    try:
        return verify_token(token)
    except AuthError as exc:
        raise UnauthenticatedError("Invalid credentials") from exc


def bearer_token(request: Request) -> str | None:
    for name in _AUTH_HEADERS:
        scheme, _, value = (request.headers.get(name) or "").partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    return None
