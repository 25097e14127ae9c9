from typing import Any

import jwt
from fastapi import HTTPException, Request, status
from jwt.exceptions import InvalidTokenError

from querygate.core.security import decode_access_token


def require_bearer(request: Request) -> dict[str, Any] | None:
    """Verify ``Authorization: Bearer <jwt>`` when the app has a verification key.

    Returns the token claims, or None when authentication is disabled.
    """
    key = getattr(request.app.state, "verification_key", None)
    if key is None:
        return None

    auth = (request.headers.get("Authorization") or "").strip()
    if not auth:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
        )
    token = auth[7:].strip() if auth[:7].lower() == "bearer " else auth
    try:
        return decode_access_token(token, key)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        )
    except InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
