"""Shared fixtures.

Settings are read at import time, so the environment is prepared here,
before any ``app`` module is imported by a test module.
"""

import os
import tempfile
import time

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

_private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PRIVATE_KEY_PEM = _private_key.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption(),
)
_public_key_pem = _private_key.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo,
)

_key_file = tempfile.NamedTemporaryFile("wb", suffix=".pem", delete=False)
_key_file.write(_public_key_pem)
_key_file.close()

os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ["JWT_PUBLIC_KEY_PATH"] = _key_file.name
os.environ.pop("JWT_ISSUER", None)


def make_token(user_id: str, role: str = "patient", **claims) -> str:
    payload = {
        "sub": user_id,
        "role": role,
        "email": f"{user_id}@example.com",
        "tokenType": "ACCESS",
        "exp": int(time.time()) + 3600,
    }
    payload.update(claims)
    return jwt.encode(payload, PRIVATE_KEY_PEM, algorithm="RS256")


@pytest.fixture
def auth_headers():
    """Factory for Authorization headers carrying a signed access token."""

    def _headers(user_id: str = "user-1", role: str = "patient", **claims):
        return {"Authorization": f"Bearer {make_token(user_id, role, **claims)}"}

    return _headers
