"""Claim models and per-request validation parameters."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..config import issuer_for

REQUIRED_ALGORITHM = "RS256"
REQUIRED_CLAIMS = ("exp", "iat", "aud", "iss", "sub")


class FirebaseClaims(BaseModel):
    """The nested ``firebase`` claim."""

    model_config = ConfigDict(extra="allow", frozen=True)

    sign_in_provider: Optional[str] = None
    identities: Optional[Dict[str, Any]] = None
    tenant: Optional[str] = None


class ClaimSet(BaseModel):
    """Decoded payload of a verified Firebase ID token.

    Unknown claims (custom claims, ``phone_number``...) are kept as extras.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    aud: str
    iss: str
    sub: str
    exp: int
    iat: int
    user_id: Optional[str] = None
    auth_time: Optional[int] = None
    email: Optional[str] = None
    email_verified: Optional[bool] = None
    name: Optional[str] = None
    picture: Optional[str] = None
    firebase: Optional[FirebaseClaims] = None

    @property
    def uid(self) -> str:
        return self.sub

    @property
    def sign_in_provider(self) -> Optional[str]:
        return self.firebase.sign_in_provider if self.firebase else None


@dataclass(frozen=True)
class ValidationParameters:
    """Constraints a token must satisfy for one verification call."""

    project_id: str
    subject: str
    leeway: int = 0
    algorithm: str = REQUIRED_ALGORITHM
    required_claims: Tuple[str, ...] = REQUIRED_CLAIMS

    @classmethod
    def for_request(cls, expected_subject: str, project_id: str, leeway: int = 0) -> "ValidationParameters":
        return cls(project_id=project_id, subject=expected_subject, leeway=leeway)

    @property
    def audience(self) -> str:
        return self.project_id

    @property
    def issuer(self) -> str:
        return issuer_for(self.project_id)

    def decode_options(self) -> Dict[str, Any]:
        """PyJWT ``options`` enforcing every check; a list ``aud`` is rejected."""
        return {
            "verify_signature": True,
            "verify_exp": True,
            "verify_iat": True,
            "verify_nbf": True,
            "verify_aud": True,
            "verify_iss": True,
            "verify_sub": True,
            "strict_aud": True,
            "require": list(self.required_claims),
        }
