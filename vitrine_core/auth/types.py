from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class AuthContext:
    """The verified caller of a callable operation."""

    uid: str
    email: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)
