"""
Bearer token verification.

Tokens are issued by the external identity provider; this service only
checks the signature and expiry and turns the payload into a Principal.
"""
import jwt
from fastapi import HTTPException, status

from app.core import config
from app.features.permissions.context import RESOLVED_CLAIM_TYPE, Claim, Principal


def verify_jwt_token(token: str) -> dict:
    """
    Verify a bearer token and return its payload.

    Raises:
        HTTPException: 401 if the token is invalid or expired
    """
    try:
        return jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"verify_exp": True},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def principal_from_payload(payload: dict) -> Principal:
    """
    One fact per scalar payload entry.

    Permission facts and the resolution marker are never taken from the token;
    both are attached server-side by the context builder.
    """
    reserved = {config.PERMISSION_CLAIM_TYPE, RESOLVED_CLAIM_TYPE}
    claims = [
        Claim(key, str(value))
        for key, value in payload.items()
        if isinstance(value, (str, int)) and key not in reserved
    ]
    return Principal(claims=claims, authenticated=True)
