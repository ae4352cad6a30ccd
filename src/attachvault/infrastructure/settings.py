"""Application settings using Pydantic Settings for configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Attachvault"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # S3 (or any S3-compatible store, e.g. localstack/minio)
    s3_endpoint: str | None = None
    s3_region: str = "eu-west-1"
    s3_access_key: SecretStr | None = None
    s3_secret_key: SecretStr | None = None
    s3_bucket: str = ""
    s3_force_path_style: bool = True
    s3_use_ssl: bool = True
    s3_max_retries: int = Field(default=3, ge=0)

    # Batch behaviour
    promotion_policy: Literal["grouped", "sequential", "parallel"] = "sequential"
    check_file_existence: bool = True
    permanent_key_source: Literal["filename", "attachment_key"] = "filename"
    authorize_before_promotion: bool = False
    serialize_same_key_batches: bool = True

    # Authorization ability names: {prepend}{create|read|delete}{append}
    security_ability_prepend: str = ""
    security_ability_append: str = ""

    # Downloads / maintenance
    download_chunk_size: int = Field(default=64 * 1024, gt=0)
    temporary_max_age_hours: float = Field(default=24.0, gt=0)
    presigned_expires_seconds: int = Field(default=3600, gt=0)

    @computed_field
    @property
    def s3_max_attempts(self) -> int:
        """Total botocore attempts: the first call plus the retries."""
        return self.s3_max_retries + 1


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
