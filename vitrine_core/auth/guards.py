from __future__ import annotations

from typing import Any, Mapping

from vitrine_core.auth.types import AuthContext
from vitrine_core.errors import InvalidArgumentError, UnauthenticatedError


def require_auth(auth: AuthContext | None) -> AuthContext:
    if auth is None:
        raise UnauthenticatedError("Authentication required")
    return auth


def require_str(data: Mapping[str, Any] | None, field: str) -> str:
    value = optional_str(data, field)
    if value is None:
        raise InvalidArgumentError(f"{field} is required")
    return value


def optional_str(data: Mapping[str, Any] | None, field: str) -> str | None:
    if not data:
        return None
    value = data.get(field)
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
