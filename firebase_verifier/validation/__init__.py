"""
Token validation package.

Verifies Firebase ID tokens: checks the RS256 signature against the key the
token names, then the issuer, audience, subject and lifetime claims, and
returns a typed ``ClaimSet``. Each failure surfaces as its own
``TokenVerificationError`` subclass.
"""

from .claims import ClaimSet, FirebaseClaims, ValidationParameters
from .verifier import TokenVerifier, verify_token

__all__ = [
    "ClaimSet",
    "FirebaseClaims",
    "TokenVerifier",
    "ValidationParameters",
    "verify_token",
]
