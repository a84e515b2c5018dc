"""
Firebase ID token verification.

Building blocks:

- keys: Fetching and selecting Firebase's published signing keys
- validation: Signature and claim checks producing a ``ClaimSet``
- errors: Closed error taxonomy (``ErrorKind``) and responses
- config: Settings via pydantic-settings (``FIREBASE_*``)
- logging: Structured logging with request correlation
- metrics: Prometheus counters for verifications and key fetches
- retry: Bounded retries for transient key fetch failures
- service: Optional FastAPI surface exposing ``/auth/verify``
"""

from .errors import ErrorKind, TokenVerificationError
from .validation import ClaimSet, TokenVerifier, verify_token

__all__ = [
    "ClaimSet",
    "ErrorKind",
    "TokenVerificationError",
    "TokenVerifier",
    "verify_token",
]
