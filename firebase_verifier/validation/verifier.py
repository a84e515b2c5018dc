"""
Firebase ID token verification pipeline.
"""

import time
from typing import Any, Dict, Optional

import httpx
import jwt
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.exceptions import InvalidSubjectError as JWTInvalidSubjectError
from pydantic import ValidationError

from ..config import VerifierConfig, get_config
from ..errors import (
    AlgorithmMismatchError,
    ExpiredTokenError,
    ImmatureTokenError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidKeyFormatError,
    InvalidSignatureError,
    InvalidSubjectError,
    MalformedTokenError,
    MissingConfigurationError,
    TokenVerificationError,
    UnclassifiedError,
    UnknownKeyIdError,
)
from ..keys import (
    CachingKeySource,
    HttpKeySource,
    KeySelectionPolicy,
    KeySource,
    KidMatchedSelection,
    selection_policy,
)
from ..logging import get_logger
from ..metrics import VerifierMetrics, get_verifier_metrics
from .claims import ClaimSet, ValidationParameters

# Missing required claims are reported under the kind of the check they skip.
_MISSING_CLAIM_ERRORS = {
    "aud": InvalidAudienceError,
    "iss": InvalidIssuerError,
    "sub": InvalidSubjectError,
}


def strip_bearer(token: str) -> str:
    """Remove a ``Bearer `` prefix if present; the scheme name is case-insensitive."""
    token = token.strip()
    if token[:7].lower() == "bearer ":
        token = token[7:].strip()
    return token


def read_header(token: str) -> Dict[str, Any]:
    """Return the token's unverified JOSE header."""
    try:
        return jwt.get_unverified_header(token)
    except jwt.PyJWTError as e:
        raise MalformedTokenError(f"Token is malformed: {e}") from e


def load_public_key(pem: str) -> rsa.RSAPublicKey:
    """Load an RSA public key from a PEM certificate or SubjectPublicKeyInfo block."""
    data = pem.encode("utf-8")
    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            key = x509.load_pem_x509_certificate(data).public_key()
        else:
            key = serialization.load_pem_public_key(data)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyFormatError(f"Public key could not be loaded: {e}") from e

    if not isinstance(key, rsa.RSAPublicKey):
        raise InvalidKeyFormatError(
            "Public key is not an RSA key",
            details={"key_type": type(key).__name__}
        )
    return key


def decode_payload(token: str, key: rsa.RSAPublicKey, params: ValidationParameters) -> Dict[str, Any]:
    """Verify the RS256 signature, then the claims; map every PyJWT failure to a kind."""
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[params.algorithm],
            audience=params.audience,
            issuer=params.issuer,
            subject=params.subject,
            leeway=params.leeway,
            options=params.decode_options(),
        )
    except jwt.InvalidSignatureError as e:
        raise InvalidSignatureError() from e
    except jwt.ExpiredSignatureError as e:
        raise ExpiredTokenError() from e
    except jwt.ImmatureSignatureError as e:
        raise ImmatureTokenError(str(e)) from e
    except jwt.InvalidAudienceError as e:
        raise InvalidAudienceError(str(e), details={"expected": params.audience}) from e
    except jwt.InvalidIssuerError as e:
        raise InvalidIssuerError(str(e), details={"expected": params.issuer}) from e
    except JWTInvalidSubjectError as e:
        raise InvalidSubjectError(str(e)) from e
    except jwt.MissingRequiredClaimError as e:
        error_cls = _MISSING_CLAIM_ERRORS.get(e.claim, MalformedTokenError)
        raise error_cls(str(e), details={"claim": e.claim}) from e
    except jwt.InvalidAlgorithmError as e:
        raise AlgorithmMismatchError(str(e)) from e
    except (jwt.InvalidIssuedAtError, jwt.DecodeError) as e:
        raise MalformedTokenError(f"Token is malformed: {e}") from e
    except jwt.InvalidKeyError as e:
        raise InvalidKeyFormatError(str(e)) from e
    except jwt.PyJWTError as e:
        raise UnclassifiedError(
            f"Token verification failed: {e}",
            details={"error_type": type(e).__name__}
        ) from e


def build_claim_set(payload: Dict[str, Any], params: ValidationParameters) -> ClaimSet:
    """Apply the Firebase-specific checks PyJWT does not know about."""
    user_id = payload.get("user_id")
    if user_id is not None and user_id != payload.get("sub"):
        raise InvalidSubjectError("user_id claim does not match subject")

    auth_time = payload.get("auth_time")
    if isinstance(auth_time, int) and auth_time > time.time() + params.leeway:
        raise ImmatureTokenError("The token is not yet valid (auth_time)")

    try:
        return ClaimSet.model_validate(payload)
    except ValidationError as e:
        raise MalformedTokenError(
            "Token claims have unexpected types",
            details={"errors": [".".join(str(p) for p in err["loc"]) for err in e.errors()]}
        ) from e


class TokenVerifier:
    """Verifies Firebase ID tokens against the published signing keys."""

    def __init__(
        self,
        key_source: Optional[KeySource] = None,
        project_id: Optional[str] = None,
        *,
        selection: Optional[KeySelectionPolicy] = None,
        leeway: int = 0,
        metrics: Optional[VerifierMetrics] = None,
    ) -> None:
        self.metrics = metrics or get_verifier_metrics()
        self.key_source = key_source or HttpKeySource(metrics=self.metrics)
        self.project_id = project_id
        self.selection = selection or KidMatchedSelection()
        self.leeway = leeway
        self.logger = get_logger("firebase.verifier")

    @classmethod
    def from_config(
        cls,
        config: VerifierConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional[VerifierMetrics] = None,
    ) -> "TokenVerifier":
        """Build a verifier wired to the configured key endpoint and policy."""
        metrics = metrics or get_verifier_metrics()
        key_source: KeySource = HttpKeySource(
            config.keys_url,
            timeout=config.http_timeout,
            attempts=config.fetch_attempts,
            retry_base_delay=config.retry_base_delay,
            transport=transport,
            metrics=metrics,
        )
        if config.key_cache_ttl:
            key_source = CachingKeySource(
                key_source,
                ttl=config.key_cache_ttl,
                min_refresh_interval=config.key_refresh_interval,
            )

        return cls(
            key_source,
            config.project_id,
            selection=selection_policy(config.key_selection),
            leeway=config.leeway,
            metrics=metrics,
        )

    async def verify(self, token: str, expected_subject: str, project_id: Optional[str] = None) -> ClaimSet:
        """Verify ``token`` for ``expected_subject`` and return its claims.

        Raises a ``TokenVerificationError`` subclass on any failure; nothing
        is retried here.
        """
        try:
            claims = await self._verify(token, expected_subject, project_id or self.project_id)
        except TokenVerificationError as e:
            self.metrics.record_verification(e.code)
            self.logger.warning("Token verification failed", kind=e.code, error=e.message)
            raise

        self.metrics.record_verification("ok")
        self.logger.info("Token verified successfully", sub=claims.sub)
        return claims

    async def _verify(self, token: str, expected_subject: str, project_id: Optional[str]) -> ClaimSet:
        if not project_id:
            raise MissingConfigurationError()
        if not expected_subject:
            raise InvalidSubjectError("Expected subject must be a non-empty string")

        token = strip_bearer(token)
        params = ValidationParameters.for_request(expected_subject, project_id, self.leeway)

        keys = await self.key_source.fetch_keys()

        header = read_header(token)
        alg = header.get("alg")
        if alg != params.algorithm:
            raise AlgorithmMismatchError(
                f"Token algorithm {alg!r} is not allowed",
                details={"alg": alg, "expected": params.algorithm}
            )

        pem = await self._select_key(keys, header)
        public_key = load_public_key(pem)
        payload = decode_payload(token, public_key, params)
        return build_claim_set(payload, params)

    async def _select_key(self, keys: Dict[str, str], header: Dict[str, Any]) -> str:
        try:
            return self.selection.select_key(keys, header)
        except UnknownKeyIdError:
            # Keys may have rotated since the cache was filled; sources that
            # cannot (or may not yet) refresh leave the error as is.
            if not self.key_source.invalidate():
                raise

        self.logger.info("Unknown key id, refreshed cached keys", kid=header.get("kid"))
        keys = await self.key_source.fetch_keys()
        return self.selection.select_key(keys, header)


async def verify_token(
    token: str,
    expected_subject: str,
    project_id: Optional[str] = None,
    *,
    key_source: Optional[KeySource] = None,
    config: Optional[VerifierConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ClaimSet:
    """Verify a Firebase ID token with a one-off verifier.

    ``project_id`` falls back to ``FIREBASE_PROJECT_ID`` from the environment.
    """
    config = config or get_config()
    if key_source is None:
        verifier = TokenVerifier.from_config(config, transport=transport)
    else:
        verifier = TokenVerifier(
            key_source,
            config.project_id,
            selection=selection_policy(config.key_selection),
            leeway=config.leeway,
        )
    return await verifier.verify(token, expected_subject, project_id)
