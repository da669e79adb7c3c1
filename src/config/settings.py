"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (and an optional .env
file) with sensible defaults. Mock modes enable local development without
an object store or a running converter.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    For lists (like api_keys), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "PhotoVault API"
    api_version: str = "1.0.0"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Comma-separated API keys allowed to upload."
    )
    admin_api_keys: str = Field(
        default="dev-admin-key",
        description="Comma-separated API keys allowed to create buckets and folders."
    )

    # S3-compatible storage (MinIO, R2, S3)
    s3_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint URL, e.g. http://minio:9000. Leave empty for AWS S3."
    )
    s3_access_key_id: str = Field(default="", description="Access key ID")
    s3_secret_access_key: str = Field(default="", description="Secret access key")
    s3_region: str = Field(default="us-east-1", description="Region used for signing and bucket creation")
    s3_mock_mode: bool = Field(
        default=False,
        description="Use an in-memory store instead of a real endpoint."
    )

    # Converter microservice
    converter_url: str = Field(
        default="",
        description="Base URL of the AVIF converter service."
    )
    converter_timeout_seconds: float = Field(
        default=300.0,
        description="Timeout for a single conversion call. Large HEIC files take a while."
    )
    converter_health_timeout_seconds: float = Field(
        default=60.0,
        description="Timeout for the converter health check."
    )
    converter_mock_mode: bool = Field(
        default=False,
        description="Use an in-process fake converter."
    )
    convertible_image_types: str = Field(
        default="image/jpeg,image/heic,image/heif",
        description="Comma-separated media types that are converted to AVIF."
    )

    # Upload limits
    max_video_size_mb: int = Field(
        default=2000,
        description="Maximum size of a single video file in MB."
    )
    max_upload_size_mb: int = Field(
        default=500,
        description="Maximum size of any single non-video file in MB."
    )

    metadata_sidecar_name: str = Field(
        default="metadata.json",
        description="File name of the per-folder metadata sidecar."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def api_keys_list(self) -> list[str]:
        """Upload keys plus admin keys; admins can do everything users can."""
        return _split(self.api_keys) + self.admin_api_keys_list

    @property
    def admin_api_keys_list(self) -> list[str]:
        return _split(self.admin_api_keys)

    @property
    def convertible_image_types_list(self) -> list[str]:
        return [t.lower() for t in _split(self.convertible_image_types)]

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return _split(self.cors_origins)

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required settings that are missing.

        What is required depends on which mock modes are on, so this is
        separate from Pydantic validation.
        """
        missing = []

        if not self.s3_mock_mode:
            if not self.s3_access_key_id:
                missing.append("S3_ACCESS_KEY_ID")
            if not self.s3_secret_access_key:
                missing.append("S3_SECRET_ACCESS_KEY")

        if not self.converter_mock_mode and not self.converter_url:
            missing.append("CONVERTER_URL")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process. Tests call
    get_settings.cache_clear() to reset.
    """
    return Settings()
