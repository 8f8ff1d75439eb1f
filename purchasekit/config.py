"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Invalid config is rejected when settings are loaded.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("json", "console")


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Settings loaded from PURCHASEKIT_* environment variables."""

    # Products offered by the app (comma-separated identifiers)
    product_ids: str = ""

    # Service identity
    service_name: str = "purchasekit"
    service_version: str = "0.1.0"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # HTTP store backend
    store_base_url: str = ""
    store_api_token: str = ""
    store_request_timeout: float = 30.0
    store_poll_timeout: float = 60.0  # Long-poll window for transaction updates

    # Signed transaction verification
    signing_key: str = ""  # PEM public key or shared secret
    signing_algorithms: str = "ES256"

    model_config = SettingsConfigDict(
        env_prefix="PURCHASEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate configuration when it is loaded.

        A misconfigured logger or store URL should surface immediately, not on
        the first purchase.
        """
        errors: list[str] = []

        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}")
        if self.log_format not in _LOG_FORMATS:
            errors.append(f"LOG_FORMAT must be 'json' or 'console', got: {self.log_format}")
        if self.store_base_url and not self.store_base_url.startswith(("http://", "https://")):
            errors.append(
                f"STORE_BASE_URL must be an http(s) URL, got: {self.store_base_url[:20]}..."
            )
        if self.store_request_timeout <= 0:
            errors.append("STORE_REQUEST_TIMEOUT must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "PURCHASEKIT CONFIGURATION ERROR",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def configured_product_ids(self) -> list[str]:
        """Get the list of configured product identifiers."""
        ids: list[str] = []
        for pid in self.product_ids.split(","):
            pid = pid.strip()
            if pid and pid not in ids:
                ids.append(pid)
        return ids

    @property
    def allowed_signing_algorithms(self) -> list[str]:
        """Get the JWS algorithms accepted for signed transactions."""
        return [alg.strip() for alg in self.signing_algorithms.split(",") if alg.strip()]


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
