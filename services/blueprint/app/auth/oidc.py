"""OIDC token validation: resolves the project owner identity."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import httpx
from authlib.jose import JsonWebKey, jwt
from authlib.jose.errors import JoseError
from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import BlueprintSettings, get_settings


@dataclass(frozen=True)
class Principal:
    subject: str
    email: str | None = None
    claims: dict = field(default_factory=dict)


class OIDCVerifier:
    """Validate JWT tokens using JWKS discovery."""

    def __init__(self, settings: BlueprintSettings) -> None:
        self._settings = settings
        self._jwks: JsonWebKey | None = None
        self._lock = asyncio.Lock()

    async def _get_jwks(self) -> JsonWebKey:
        async with self._lock:
            if self._jwks is not None:
                return self._jwks
            issuer = self._settings.security.oidc_issuer_url
            if not issuer:
                raise RuntimeError("OIDC issuer URL is not configured")
            jwks_url = issuer.rstrip("/") + "/.well-known/jwks.json"
            async with httpx.AsyncClient() as client:
                response = await client.get(jwks_url, timeout=10)
                response.raise_for_status()
            self._jwks = JsonWebKey.import_key_set(response.json())
            return self._jwks

    async def verify(self, credentials: HTTPAuthorizationCredentials | None) -> Principal:
        security = self._settings.security
        if not security.oidc_issuer_url:
            # Auth disabled (local/dev); every request belongs to one local owner
            return Principal(subject=security.anonymous_subject)
        if credentials is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        jwks = await self._get_jwks()
        try:
            claims = jwt.decode(credentials.credentials, jwks)
            claims.validate()
        except JoseError as exc:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc

        if claims.get("iss") != security.oidc_issuer_url:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid issuer")
        audience = security.oidc_audience
        aud = claims.get("aud")
        if audience and audience not in (aud if isinstance(aud, list) else [aud]):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid audience")
        subject = claims.get("sub")
        if not subject:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
        return Principal(subject=subject, email=claims.get("email"), claims=dict(claims))


_oidc_singleton: OIDCVerifier | None = None


def get_oidc_verifier() -> OIDCVerifier:
    global _oidc_singleton
    if _oidc_singleton is None:
        _oidc_singleton = OIDCVerifier(get_settings())
    return _oidc_singleton


async def current_principal(
    credentials: HTTPAuthorizationCredentials | None = Security(HTTPBearer(auto_error=False)),
) -> Principal:
    return await get_oidc_verifier().verify(credentials)


__all__ = ["OIDCVerifier", "Principal", "current_principal", "get_oidc_verifier"]
