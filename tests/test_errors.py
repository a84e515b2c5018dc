"""
Unit tests for the error taxonomy.
"""

import pytest

from firebase_verifier import errors
from firebase_verifier.errors import ErrorKind, ErrorResponse, InvalidAudienceError, TokenVerificationError

ERROR_CLASSES = [
    cls for cls in vars(errors).values()
    if isinstance(cls, type) and issubclass(cls, TokenVerificationError) and cls is not TokenVerificationError
]


def test_every_kind_has_exactly_one_error_class():
    assert sorted(cls.kind.value for cls in ERROR_CLASSES) == sorted(kind.value for kind in ErrorKind)


@pytest.mark.parametrize("error_cls", ERROR_CLASSES)
def test_default_message_and_code(error_cls):
    error = error_cls()

    assert error.code == error_cls.kind.value
    assert error.message
    assert error.details == {}


def test_to_response():
    error = InvalidAudienceError("Audience doesn't match (strict)", details={"expected": "demo-project"})

    response = error.to_response()

    assert isinstance(response, ErrorResponse)
    assert response.code == "invalid-aud"
    assert response.message == "Audience doesn't match (strict)"
    assert response.details == {"expected": "demo-project"}
