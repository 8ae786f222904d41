"""
Bearer token verification.

Tokens are issued by the upstream identity service; this module only checks
the signature and expiry and hands back the claims.
"""
import jwt
from fastapi import HTTPException, status

from taskhub.core import config


def verify_jwt_token(token: str) -> dict:
    """
    Verify a JWT and return its payload.

    Args:
        token: JWT token from Authorization header

    Returns:
        Decoded JWT payload; the user id is carried in the `sub` claim

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub"]},
        )
        return payload

    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_access_token(user_id: str, **claims) -> str:
    """Sign a token for `user_id`. Used by local tooling and tests."""
    payload = {"sub": user_id, **claims}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
