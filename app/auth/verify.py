"""
verify.py
---------
Purpose:
    Supabase JWT verification for the collaboration dashboard routes.

Notes:
    - Tokens are ES256-signed; keys come from the project's JWKS endpoint.
    - The JWKS client is created on first use and caches signing keys.
    - `auth_dependency` returns the decoded claims; `sub` is the acting user.
    - Share-link routes do not use this dependency.
"""

from functools import lru_cache

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import PyJWKClient

from app.config import settings

SUPABASE_AUDIENCE = "authenticated"

_security = HTTPBearer()


@lru_cache(maxsize=1)
def get_jwk_client() -> PyJWKClient:
    return PyJWKClient(settings.jwks_url(), cache_keys=True)


def verify_jwt(token: str) -> dict:
    try:
        signing_key = get_jwk_client().get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=["ES256"],
            audience=SUPABASE_AUDIENCE,
            options={"verify_exp": True, "require": ["sub", "exp"]},
        )
    except (jwt.PyJWTError, jwt.PyJWKClientError) as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication token: {e}",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def auth_dependency(credentials: HTTPAuthorizationCredentials = Depends(_security)) -> dict:
    return verify_jwt(credentials.credentials)
