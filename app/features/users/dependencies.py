"""
FastAPI dependencies for the authenticated principal.
"""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.features.permissions.context import Principal
from app.features.users.auth import verify_jwt_token, principal_from_payload


security = HTTPBearer(auto_error=False)


async def get_current_principal(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> Principal:
    """
    Materialize the principal for this request from the bearer token.

    Requests without a token get an unauthenticated principal; policy checks
    deny it. Invalid tokens are rejected with 401.

    Usage:
        @router.get("/me")
        async def me(principal: Principal = Depends(get_current_principal)):
            ...
    """
    if credentials is None:
        return Principal(authenticated=False)
    payload = verify_jwt_token(credentials.credentials)
    return principal_from_payload(payload)


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
