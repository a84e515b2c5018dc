"""
Error taxonomy for Firebase ID token verification.

Every failure raised by the verification pipeline is a subclass of
``TokenVerificationError`` and carries a closed ``ErrorKind`` so callers can
tell an expired token from a wrong audience without parsing messages.
"""

from enum import Enum
from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Discriminated failure kinds surfaced to callers."""

    MISSING_CONFIGURATION = "missing-configuration"
    KEY_RETRIEVAL_FAILED = "key-retrieval-failed"
    EMPTY_KEY_SET = "empty-key-set"
    UNKNOWN_KEY_ID = "unknown-key-id"
    INVALID_KEY_FORMAT = "invalid-key-format"
    MALFORMED_TOKEN = "malformed-token"
    INVALID_SIGNATURE = "invalid-signature"
    ALGORITHM_MISMATCH = "invalid-alg"
    INVALID_ISSUER = "invalid-issuer"
    INVALID_AUDIENCE = "invalid-aud"
    INVALID_SUBJECT = "invalid-subject"
    EXPIRED_TOKEN = "expired-signature"
    IMMATURE_TOKEN = "immature-signature"
    UNCLASSIFIED = "unclassified"


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class TokenVerificationError(Exception):
    """Base exception for token verification failures."""

    kind: ErrorKind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = self.kind.value
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class MissingConfigurationError(TokenVerificationError):
    """The Firebase project identifier was not supplied."""

    kind = ErrorKind.MISSING_CONFIGURATION

    def __init__(self, message: str = "Firebase project id is not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class KeyRetrievalError(TokenVerificationError):
    """Public signing keys could not be fetched or parsed."""

    kind = ErrorKind.KEY_RETRIEVAL_FAILED

    def __init__(self, message: str = "Failed to retrieve public keys", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class EmptyKeySetError(TokenVerificationError):
    """The key endpoint returned no keys."""

    kind = ErrorKind.EMPTY_KEY_SET

    def __init__(self, message: str = "Public key set is empty", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class UnknownKeyIdError(TokenVerificationError):
    """The token names a key that is not in the published set."""

    kind = ErrorKind.UNKNOWN_KEY_ID

    def __init__(self, message: str = "No public key matches the token key id", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidKeyFormatError(TokenVerificationError):
    """The selected key material is not a usable RSA public key."""

    kind = ErrorKind.INVALID_KEY_FORMAT

    def __init__(self, message: str = "Public key is not a valid RSA key", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class MalformedTokenError(TokenVerificationError):
    """The token is not a well-formed compact JWT."""

    kind = ErrorKind.MALFORMED_TOKEN

    def __init__(self, message: str = "Token is malformed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidSignatureError(TokenVerificationError):
    kind = ErrorKind.INVALID_SIGNATURE

    def __init__(self, message: str = "Token signature is invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AlgorithmMismatchError(TokenVerificationError):
    kind = ErrorKind.ALGORITHM_MISMATCH

    def __init__(self, message: str = "Token algorithm is not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidIssuerError(TokenVerificationError):
    kind = ErrorKind.INVALID_ISSUER

    def __init__(self, message: str = "Token issuer is invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidAudienceError(TokenVerificationError):
    kind = ErrorKind.INVALID_AUDIENCE

    def __init__(self, message: str = "Token audience is invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class InvalidSubjectError(TokenVerificationError):
    kind = ErrorKind.INVALID_SUBJECT

    def __init__(self, message: str = "Token subject is invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ExpiredTokenError(TokenVerificationError):
    kind = ErrorKind.EXPIRED_TOKEN

    def __init__(self, message: str = "Token has expired", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ImmatureTokenError(TokenVerificationError):
    kind = ErrorKind.IMMATURE_TOKEN

    def __init__(self, message: str = "Token is not yet valid", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class UnclassifiedError(TokenVerificationError):
    """A verification failure with no dedicated kind; details name the cause."""

    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, message: str = "Token verification failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
