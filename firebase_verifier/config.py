"""
Configuration management for the Firebase token verifier.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

GOOGLE_SECURETOKEN_KEYS_URL = (
    "https://www.googleapis.com/robot/v1/metadata/x509/"
    "securetoken@system.gserviceaccount.com"
)
FIREBASE_ISSUER_PREFIX = "https://securetoken.google.com/"

KEY_SELECTION_KID = "kid"
KEY_SELECTION_ARBITRARY = "arbitrary"


class VerifierConfig(BaseSettings):
    """Verifier settings, read from ``FIREBASE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="FIREBASE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Project
    project_id: Optional[str] = None

    # Key retrieval
    keys_url: str = GOOGLE_SECURETOKEN_KEYS_URL
    http_timeout: float = Field(default=10.0, gt=0)
    fetch_attempts: int = Field(default=1, ge=1)
    retry_base_delay: float = Field(default=0.2, ge=0)
    key_cache_ttl: int = Field(default=0, ge=0)
    key_refresh_interval: int = Field(default=60, ge=0)

    # Validation
    leeway: int = Field(default=0, ge=0)
    key_selection: str = Field(default=KEY_SELECTION_KID, pattern=f"^({KEY_SELECTION_KID}|{KEY_SELECTION_ARBITRARY})$")

    # Observability
    log_level: str = "info"


def get_config(**overrides) -> VerifierConfig:
    """Get verifier configuration, applying explicit overrides over the environment."""
    return VerifierConfig(**overrides)


def issuer_for(project_id: str) -> str:
    """Return the issuer Firebase stamps on tokens for ``project_id``."""
    return f"{FIREBASE_ISSUER_PREFIX}{project_id}"
