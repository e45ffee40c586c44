from __future__ import annotations

import json
import os
import urllib.request
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping

import jwt
from cryptography import x509
from jwt import PyJWKClient

from vitrine_core.auth.types import AuthContext
from vitrine_core.errors import AuthError

# Firebase publishes its ID token signing keys as PEM certificates keyed by kid.
FIREBASE_CERTS_URI = (
    "https://www.googleapis.com/robot/v1/metadata/x509/"
    "securetoken@system.gserviceaccount.com"
)

_X509_MARKER = "/metadata/x509/"


@dataclass(frozen=True)
class TokenSettings:
    issuer: str | None
    audiences: tuple[str, ...]
    algorithms: tuple[str, ...]
    hs256_secret: str | None
    public_key: str | None
    keys_uri: str | None
    required_claims: tuple[str, ...]
    leeway_seconds: int

    @classmethod
    def from_env(cls) -> "TokenSettings":
        """Read verification settings.

        With only ``FIREBASE_PROJECT_ID`` set, tokens are checked the way
        Firebase Auth issues them: RS256, the project as audience and
        ``https://securetoken.google.com/<project>`` as issuer.
        """
        project_id = _env("FIREBASE_PROJECT_ID")
        issuer = _env("AUTH_ISSUER")
        audience = _env("AUTH_AUDIENCE")
        keys_uri = _env("AUTH_JWKS_URI")
        if project_id:
            issuer = issuer or f"https://securetoken.google.com/{project_id}"
            audience = audience or project_id
            keys_uri = keys_uri or FIREBASE_CERTS_URI
        return cls(
            issuer=issuer,
            audiences=_csv(audience),
            algorithms=_csv(os.getenv("AUTH_JWT_ALGORITHMS", "RS256")),
            hs256_secret=_env("AUTH_JWT_HS256_SECRET"),
            public_key=_env("AUTH_JWT_PUBLIC_KEY"),
            keys_uri=keys_uri,
            required_claims=_csv(os.getenv("AUTH_REQUIRED_CLAIMS", "sub,exp,iat")),
            leeway_seconds=int(os.getenv("AUTH_JWT_LEEWAY_SECONDS", "0")),
        )


def verify_token(token: str, *, settings: TokenSettings | None = None) -> AuthContext:
    """Verify a bearer token and return the caller it identifies."""
    settings = settings or TokenSettings.from_env()
    key, algorithms = _verification_key(token, settings)
    try:
        claims = jwt.decode(
            token,
            key=key,
            algorithms=list(algorithms),
            audience=list(settings.audiences) or None,
            issuer=settings.issuer,
            leeway=settings.leeway_seconds,
            options={
                "require": list(settings.required_claims),
                "verify_aud": bool(settings.audiences),
            },
        )
    except jwt.PyJWTError as exc:
        raise AuthError(f"Invalid token: {exc}") from exc
    return caller_from_claims(claims)


def caller_from_claims(claims: Mapping[str, Any]) -> AuthContext:
    # Firebase mirrors the uid into user_id; other issuers only set sub.
    uid = _text(claims.get("user_id")) or _text(claims.get("sub"))
    if not uid:
        raise AuthError("Token has no subject")
    return AuthContext(uid=uid, email=_text(claims.get("email")), claims=dict(claims))


def _verification_key(
    token: str,
    settings: TokenSettings,
) -> tuple[Any, tuple[str, ...]]:
    if settings.hs256_secret:
        return settings.hs256_secret, ("HS256",)
    if settings.public_key:
        return settings.public_key, settings.algorithms
    if not settings.keys_uri:
        raise AuthError("Token verification is not configured")
    if _X509_MARKER in settings.keys_uri:
        kid = _header(token).get("kid")
        if not kid:
            raise AuthError("Token header has no kid")
        pem = _x509_certificates(settings.keys_uri).get(kid)
        if not pem:
            # Keys rotate; refetch once before rejecting.
            _x509_certificates.cache_clear()
            pem = _x509_certificates(settings.keys_uri).get(kid)
        if not pem:
            raise AuthError("Token signed with an unknown key")
        try:
            certificate = x509.load_pem_x509_certificate(pem.encode("utf-8"))
        except ValueError as exc:
            raise AuthError("Signing certificate is unreadable") from exc
        return certificate.public_key(), settings.algorithms
    try:
        signing_key = _jwk_client(settings.keys_uri).get_signing_key_from_jwt(token)
    except jwt.PyJWTError as exc:
        raise AuthError("Signing key lookup failed") from exc
    return signing_key.key, settings.algorithms


def _header(token: str) -> dict[str, Any]:
    try:
        return jwt.get_unverified_header(token)
    except jwt.PyJWTError as exc:
        raise AuthError("Token header is malformed") from exc


@lru_cache(maxsize=4)
def _x509_certificates(uri: str) -> dict[str, str]:
    try:
        with urllib.request.urlopen(uri, timeout=10) as resp:
            payload = json.loads(resp.read().decode("utf-8"))
    except (OSError, ValueError) as exc:
        raise AuthError("Could not fetch signing certificates") from exc
    if not isinstance(payload, dict):
        raise AuthError("Signing certificate payload is not an object")
    return {str(kid): str(pem) for kid, pem in payload.items()}


@lru_cache(maxsize=4)
def _jwk_client(uri: str) -> PyJWKClient:
    return PyJWKClient(uri)


def _env(name: str) -> str | None:
    return _text(os.getenv(name))


def _csv(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
