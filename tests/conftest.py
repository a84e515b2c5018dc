"""Shared test fixtures for the Firebase token verifier."""

import datetime
import time
from typing import Any, Callable, Dict, Optional

import jwt
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID
from prometheus_client import CollectorRegistry

from firebase_verifier.keys import FetchedKeys, KeySource
from firebase_verifier.metrics import VerifierMetrics

PROJECT_ID = "demo-project"
UID = "Xy7uT0mAbCdEfGhIjKlMnOpQrSt1"
SIGNING_KID = "kid-signing"
OTHER_KID = "kid-other"


def self_signed_cert_pem(private_key) -> str:
    """Build a PEM certificate the way Google publishes securetoken keys."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "securetoken.system.gserviceaccount.com")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode()


class StaticKeySource(KeySource):
    """Key source returning a fixed mapping and counting calls."""

    def __init__(self, keys: Dict[str, str], max_age: Optional[int] = None):
        self.keys = keys
        self.max_age = max_age
        self.calls = 0

    async def fetch_key_set(self) -> FetchedKeys:
        self.calls += 1
        return FetchedKeys(keys=dict(self.keys), max_age=self.max_age)


@pytest.fixture(scope="session")
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def published_keys(signing_key, other_key) -> Dict[str, str]:
    """Two published certificates; the signing one comes second."""
    return {
        OTHER_KID: self_signed_cert_pem(other_key),
        SIGNING_KID: self_signed_cert_pem(signing_key),
    }


@pytest.fixture
def key_source(published_keys) -> StaticKeySource:
    return StaticKeySource(published_keys)


@pytest.fixture
def make_key_source() -> Callable[..., StaticKeySource]:
    return StaticKeySource


@pytest.fixture
def metrics() -> VerifierMetrics:
    return VerifierMetrics(CollectorRegistry())


@pytest.fixture
def claims() -> Dict[str, Any]:
    """A Firebase ID token payload valid for an hour."""
    now = int(time.time())
    return {
        "name": "Jane Doe",
        "picture": "https://example.com/jane.png",
        "iss": f"https://securetoken.google.com/{PROJECT_ID}",
        "aud": PROJECT_ID,
        "auth_time": now - 120,
        "user_id": UID,
        "sub": UID,
        "iat": now - 60,
        "exp": now + 3600,
        "email": "jane@example.com",
        "email_verified": True,
        "firebase": {
            "identities": {"email": ["jane@example.com"]},
            "sign_in_provider": "password",
        },
    }


@pytest.fixture
def mint(signing_key, claims) -> Callable[..., str]:
    """Sign a token; keyword overrides replace payload claims (``None`` removes one)."""

    def _mint(key=None, algorithm: str = "RS256", kid: Optional[str] = SIGNING_KID, **overrides) -> str:
        payload = dict(claims)
        for name, value in overrides.items():
            if value is None:
                payload.pop(name, None)
            else:
                payload[name] = value

        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(payload, key if key is not None else signing_key, algorithm=algorithm, headers=headers)

    return _mint
