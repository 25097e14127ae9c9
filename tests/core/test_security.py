"""Unit tests for core.security (RS256 bearer tokens)."""

from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from querygate.core import security
from querygate.core.security import (
    create_access_token,
    decode_access_token,
    issue_startup_token,
    resolve_verification_key,
)


@pytest.fixture(scope="module")
def private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def key_file(tmp_path: Path, private_key) -> Path:
    p = tmp_path / "private.pem"
    p.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return p


def test_round_trip_claims(private_key):
    token = create_access_token(private_key, "gateway-client")
    claims = decode_access_token(token, private_key.public_key())
    assert claims["id"] == "gateway-client"
    assert "exp" not in claims


def test_wrong_key_rejected(private_key):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    token = create_access_token(other, "x")
    with pytest.raises(jwt.InvalidTokenError):
        decode_access_token(token, private_key.public_key())


def test_expired_token_rejected(private_key):
    token = create_access_token(private_key, "x", expires_delta=timedelta(seconds=-10))
    with pytest.raises(jwt.ExpiredSignatureError):
        decode_access_token(token, private_key.public_key())


def test_verification_key_derived_from_private_key(key_file, private_key):
    with patch.object(security.settings, "JWT_PUBLIC_KEY_PATH", None), patch.object(
        security.settings, "JWT_PRIVATE_KEY_PATH", str(key_file)
    ):
        key = resolve_verification_key()
    assert key.public_numbers() == private_key.public_key().public_numbers()


def test_no_keys_means_no_auth():
    with patch.object(security.settings, "JWT_PUBLIC_KEY_PATH", None), patch.object(
        security.settings, "JWT_PRIVATE_KEY_PATH", None
    ):
        assert resolve_verification_key() is None
        assert issue_startup_token() is None


def test_startup_token_signed_with_secret(key_file, private_key):
    with patch.object(security.settings, "JWT_PRIVATE_KEY_PATH", str(key_file)), patch.object(
        security.settings, "SECRET_KEY", "s3cret"
    ):
        token = issue_startup_token()
    assert decode_access_token(token, private_key.public_key())["id"] == "s3cret"
