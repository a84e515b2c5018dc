"""
HTTP surface for the Firebase token verifier.
"""

import time
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import VerifierConfig, get_config
from .errors import ErrorKind, TokenVerificationError
from .logging import clear_context, configure_logging, get_logger, set_request_id
from .validation import TokenVerifier

SERVICE_NAME = "firebase-verifier"

# Failures caused by the deployment rather than the caller's token.
_UNAVAILABLE_KINDS = {ErrorKind.MISSING_CONFIGURATION, ErrorKind.KEY_RETRIEVAL_FAILED}


class TokenVerificationRequest(BaseModel):
    """Request model for token verification."""
    token: str
    uid: str


class VerifierService:
    """FastAPI app wrapping a ``TokenVerifier``."""

    def __init__(self, verifier: Optional[TokenVerifier] = None, config: Optional[VerifierConfig] = None):
        self.config = config or get_config()
        configure_logging(SERVICE_NAME, self.config.log_level)
        self.logger = get_logger("firebase.service")
        self.verifier = verifier or TokenVerifier.from_config(self.config)

        self.app = FastAPI(
            title="Firebase Token Verifier",
            description="Verifies Firebase ID tokens against Google's published keys",
            version="1.0.0",
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self):
        @self.app.middleware("http")
        async def request_context(request: Request, call_next):
            set_request_id(request.headers.get("X-Request-ID"))
            try:
                return await call_next(request)
            finally:
                clear_context()

    def _setup_routes(self):
        @self.app.get("/health")
        async def health():
            return {"service": SERVICE_NAME, "status": "ok"}

        @self.app.post("/auth/verify")
        async def verify_token(request: TokenVerificationRequest):
            """Token verification endpoint."""
            start_time = time.perf_counter()

            try:
                claims = await self.verifier.verify(request.token, request.uid)
            except TokenVerificationError as e:
                status_code = 503 if e.kind in _UNAVAILABLE_KINDS else 401
                self.logger.info(
                    "Verification rejected",
                    kind=e.code,
                    status_code=status_code,
                    duration=time.perf_counter() - start_time
                )
                return JSONResponse(
                    status_code=status_code,
                    content={
                        "valid": False,
                        "error": e.code,
                        "message": e.message,
                        "details": e.details,
                    },
                )

            return {
                "valid": True,
                "claims": claims.model_dump(exclude_none=True),
            }


def create_app(verifier: Optional[TokenVerifier] = None, config: Optional[VerifierConfig] = None) -> FastAPI:
    """Create FastAPI application."""
    return VerifierService(verifier, config).app
