"""Configuration management for the bulk import/export CLI."""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from fhir_bulk.errors import ConfigurationError

# Load .env if exists (local dev only)
load_dotenv()


@dataclass
class Config:
    """Store connection and pipeline settings loaded from environment variables."""

    # FHIR store
    base_url: str = os.getenv("FHIR_BASE_URL", "https://api.medplum.com/")
    fhir_url_path: str = os.getenv("FHIR_URL_PATH", "fhir/R4/")
    token_url: str = os.getenv("FHIR_TOKEN_URL", "oauth2/token")

    # Auth: either a static token or client credentials
    client_id: str = os.getenv("FHIR_CLIENT_ID", "")
    client_secret: str = os.getenv("FHIR_CLIENT_SECRET", "")
    access_token: str = os.getenv("FHIR_ACCESS_TOKEN", "")

    # HTTP
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "60"))
    max_retries: int = int(os.getenv("MAX_RETRIES", "3"))
    retry_backoff: float = float(os.getenv("RETRY_BACKOFF", "1.0"))

    # Export polling
    export_poll_interval: float = float(os.getenv("EXPORT_POLL_INTERVAL", "5"))
    export_max_wait: float = float(os.getenv("EXPORT_MAX_WAIT", "3600"))

    # Import
    batch_size: int = int(os.getenv("BATCH_SIZE", "25"))

    @property
    def fhir_base_url(self) -> str:
        """Base URL of the FHIR API, always ending with a slash."""
        return _join_url(self.base_url, self.fhir_url_path)

    @property
    def token_endpoint(self) -> str:
        """Absolute URL of the OAuth2 token endpoint."""
        return _join_url(self.base_url, self.token_url).rstrip("/")

    def validate(self) -> None:
        """Validate required configuration."""
        if not self.base_url:
            raise ConfigurationError("FHIR_BASE_URL environment variable is required")

        if not self.access_token and not (self.client_id and self.client_secret):
            raise ConfigurationError(
                "Either FHIR_ACCESS_TOKEN or both FHIR_CLIENT_ID and "
                "FHIR_CLIENT_SECRET are required"
            )

        if self.request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("MAX_RETRIES must not be negative")
        if self.retry_backoff < 0:
            raise ConfigurationError("RETRY_BACKOFF must not be negative")
        if self.export_poll_interval <= 0:
            raise ConfigurationError("EXPORT_POLL_INTERVAL must be positive")
        if self.batch_size < 1:
            raise ConfigurationError("BATCH_SIZE must be a positive integer")


def _join_url(base: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        url = path
    else:
        url = base.rstrip("/") + "/" + path.lstrip("/")
    return url if url.endswith("/") else url + "/"


config = Config()
