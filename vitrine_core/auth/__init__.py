from vitrine_core.auth.guards import optional_str, require_auth, require_str
from vitrine_core.auth.jwt import TokenSettings, caller_from_claims, verify_token
from vitrine_core.auth.types import AuthContext

__all__ = [
    "AuthContext",
    "TokenSettings",
    "caller_from_claims",
    "optional_str",
    "require_auth",
    "require_str",
    "verify_token",
]
