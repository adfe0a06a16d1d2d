"""Shared fixtures for the ghapp test suite.

RSA keys are generated once per session; 2048-bit generation is too slow
to repeat per test. HTTP is never touched: tests patch ``httpx.Client``
or the ghapp functions that wrap it.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

TEST_APP_ID = "12345"
TEST_REPO = "octo-org/octo-repo"


def _generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


_RSA_KEY = _generate_rsa_key()

PKCS1_PEM = _RSA_KEY.private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.TraditionalOpenSSL,
    serialization.NoEncryption(),
).decode()

PKCS8_PEM = _RSA_KEY.private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.PKCS8,
    serialization.NoEncryption(),
).decode()

PUBLIC_PEM = _RSA_KEY.public_key().public_bytes(
    serialization.Encoding.PEM,
    serialization.PublicFormat.SubjectPublicKeyInfo,
).decode()

EC_PKCS8_PEM = ec.generate_private_key(ec.SECP256R1()).private_bytes(
    serialization.Encoding.PEM,
    serialization.PrivateFormat.PKCS8,
    serialization.NoEncryption(),
).decode()


def make_response(status_code: int, json_data=None, text: str = "") -> MagicMock:
    """Build a minimal mock httpx.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON body")
    else:
        resp.json.return_value = json_data
    resp.text = text
    return resp


def mock_http_client(MockClient: MagicMock, *responses: MagicMock) -> MagicMock:
    """Wire a patched ``httpx.Client`` to return *responses* in order.

    Returns the object whose ``request`` method the code under test calls.
    """
    inner = MockClient.return_value.__enter__.return_value
    inner.request.side_effect = list(responses)
    return inner


@pytest.fixture
def private_key_file(tmp_path: Path) -> Path:
    path = tmp_path / "app.pem"
    path.write_text(PKCS1_PEM)
    return path
