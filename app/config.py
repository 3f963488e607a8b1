"""Centralized configuration from environment variables.

All configuration that varies between environments (local dev, CI, production)
is read from environment variables here. Import from this module instead of
reading os.environ directly in service code.
"""
import os
from functools import lru_cache


class Settings:
    """Application settings loaded from environment variables."""

    # GCP Configuration
    GCP_PROJECT_ID: str = os.getenv("GCP_PROJECT_ID", "")
    GCS_BUCKET_NAME: str = os.getenv("GCS_BUCKET_NAME", "")
    INSTANCE_CONNECTION_NAME: str = os.getenv("INSTANCE_CONNECTION_NAME", "")

    # Database
    DB_HOST: str = os.getenv("DB_HOST", "localhost")
    DB_PORT: str = os.getenv("DB_PORT", "5432")
    DB_NAME: str = os.getenv("DB_NAME", "barman_orders")
    DB_USER: str = os.getenv("DB_USER", "barman_app")
    DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")

    # Payment proof storage: "gcs" or "local"
    PROOF_STORAGE_BACKEND: str = os.getenv("PROOF_STORAGE_BACKEND", "local")
    PROOF_LOCAL_DIR: str = os.getenv("PROOF_LOCAL_DIR", "./payment-proofs")

    # External drug catalog service (empty disables enrichment)
    CATALOG_API_URL: str = os.getenv("CATALOG_API_URL", "")
    CATALOG_TIMEOUT_SECONDS: float = float(os.getenv("CATALOG_TIMEOUT_SECONDS", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS
    CORS_ORIGINS: list[str] = os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
    ).split(",")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
