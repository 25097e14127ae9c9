import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes, PublicKeyTypes

from querygate.core.config import settings

_logger = logging.getLogger(__name__)


ALGORITHM = "RS256"

# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def load_private_key(path: str | Path) -> PrivateKeyTypes:
    return serialization.load_pem_private_key(Path(path).read_bytes(), password=None)


def load_public_key(path: str | Path) -> PublicKeyTypes:
    return serialization.load_pem_public_key(Path(path).read_bytes())


def resolve_verification_key() -> PublicKeyTypes | None:
    """Public key for bearer verification: the configured one, else derived from the private key.

    None means query routes are unauthenticated.
    """
    if settings.JWT_PUBLIC_KEY_PATH:
        return load_public_key(settings.JWT_PUBLIC_KEY_PATH)
    if settings.JWT_PRIVATE_KEY_PATH:
        return load_private_key(settings.JWT_PRIVATE_KEY_PATH).public_key()
    return None


# ---------------------------------------------------------------------------
# JWT helpers
# ---------------------------------------------------------------------------


def create_access_token(
    private_key: PrivateKeyTypes,
    subject: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign ``{"id": subject}`` with RS256; no ``exp`` unless *expires_delta* is given."""
    to_encode: dict[str, Any] = {"id": subject, "iat": datetime.now(timezone.utc)}
    if expires_delta is not None:
        to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    return jwt.encode(to_encode, private_key, algorithm=ALGORITHM)


def decode_access_token(token: str, public_key: PublicKeyTypes) -> dict[str, Any]:
    """Verify signature (and ``exp`` when present). Raises ``jwt.InvalidTokenError``."""
    return jwt.decode(token, public_key, algorithms=[ALGORITHM])


def issue_startup_token() -> str | None:
    """Sign a token for SECRET_KEY with the configured private key and log it for operators."""
    if not settings.JWT_PRIVATE_KEY_PATH:
        return None
    try:
        key = load_private_key(settings.JWT_PRIVATE_KEY_PATH)
    except (OSError, ValueError, TypeError):
        _logger.exception("Cannot load JWT private key %s", settings.JWT_PRIVATE_KEY_PATH)
        return None
    token = create_access_token(key, settings.SECRET_KEY)
    _logger.info("Add authorization to Headers")
    _logger.info("authorization: Bearer %s", token)
    return token
