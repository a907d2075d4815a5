"""
Tubely Configuration Management Module

This module provides configuration management for the Tubely media backend
using Pydantic Settings. It loads and validates all environment variables
required for:
- Application settings (name, environment, debug mode, logging)
- JWT bearer-token authentication
- MongoDB connection and pooling for video records
- S3/MinIO object storage and the persisted reference format
- Upload limits for videos and thumbnails
- Local asset serving (thumbnails) and temporary staging
- External media tools (ffprobe, ffmpeg) and their timeouts

All settings support environment variable overrides and .env file loading.
A Settings instance is passed explicitly into every service at construction;
nothing below the HTTP layer reads configuration from module state.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Upload size limits
ONE_GIB = 1 << 30
ONE_MIB = 1 << 20


class Settings(BaseSettings):
    """
    Configuration settings for the Tubely media backend.

    Configuration Categories:
    - Application: Core app settings like name, environment, debug mode
    - Auth: JWT signing secret, algorithm and token lifetime
    - MongoDB: Database connection URI and connection pool settings
    - S3/MinIO: Object storage credentials, bucket and reference mode
    - Upload: Video and thumbnail size limits
    - Assets: Local asset directory and public base URL
    - Media tools: ffprobe/ffmpeg binaries and wall-clock timeout

    Example usage:
        ```python
        from app.config import Settings

        settings = Settings(s3_bucket_name="tubely-dev")
        print(settings.public_assets_base_url)
        ```
    """

    # =========================================================================
    # Application Settings
    # =========================================================================

    app_name: str = Field(
        default="tubely",
        description="Application name displayed in API documentation and logs",
    )

    app_env: str = Field(
        default="development",
        description="Application environment (development, staging, production, testing)",
    )

    debug: bool = Field(default=False, description="Enable debug mode with hot-reload")

    log_level: str = Field(
        default="info", description="Logging level (debug, info, warning, error, critical)"
    )

    json_logs: bool | None = Field(
        default=None,
        description="Force JSON log output. Defaults to JSON outside development.",
    )

    host: str = Field(default="0.0.0.0", description="Host address for the API server to bind to")

    port: int = Field(default=8091, description="Port number for the API server", ge=1, le=65535)

    cors_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="List of allowed CORS origins for frontend access",
    )

    # =========================================================================
    # Auth Configuration
    # =========================================================================

    secret_key: str = Field(
        default="development-secret-key-change-in-production-32chars",
        description="Secret used to sign and verify bearer JWTs",
        min_length=32,
    )

    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")

    jwt_expiration_hours: int = Field(
        default=24, description="JWT token expiration time in hours", ge=1, le=168
    )

    # =========================================================================
    # MongoDB Configuration
    # =========================================================================

    mongodb_uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI (e.g., mongodb://localhost:27017)",
    )

    mongodb_db_name: str = Field(default="tubely", description="MongoDB database name")

    mongodb_min_pool_size: int = Field(
        default=1, description="Minimum number of connections in MongoDB connection pool", ge=0
    )

    mongodb_max_pool_size: int = Field(
        default=50, description="Maximum number of connections in MongoDB connection pool", ge=1
    )

    # =========================================================================
    # S3/MinIO Storage Configuration
    # =========================================================================

    s3_endpoint_url: str | None = Field(
        default=None, description="S3-compatible endpoint URL for MinIO (None for AWS S3)"
    )

    s3_access_key_id: str | None = Field(
        default=None, description="S3 access key ID (None uses the default AWS credential chain)"
    )

    s3_secret_access_key: str | None = Field(
        default=None, description="S3 secret access key"
    )

    s3_bucket_name: str = Field(
        default="tubely-videos", description="S3 bucket name for processed videos"
    )

    s3_region: str = Field(default="us-east-1", description="AWS region for the S3 bucket")

    storage_reference_mode: str = Field(
        default="presigned",
        description=(
            "How video references are persisted: 'presigned' stores '<bucket>,<key>' and "
            "signs at read time, 'cdn' stores '<distribution>/<key>' and returns it as-is"
        ),
    )

    s3_cf_distribution: str | None = Field(
        default=None,
        description="CDN distribution base URL used when storage_reference_mode is 'cdn'",
    )

    presigned_url_expiration_seconds: int = Field(
        default=300,
        description="Lifetime of presigned download URLs in seconds (5 minutes)",
        ge=1,
        le=604800,
    )

    # =========================================================================
    # Upload Settings
    # =========================================================================

    max_video_upload_bytes: int = Field(
        default=ONE_GIB,
        description="Maximum accepted video body size in bytes (1 GiB)",
        ge=1,
    )

    max_thumbnail_upload_mb: int = Field(
        default=10,
        description="Maximum accepted thumbnail size in megabytes",
        ge=1,
        le=100,
    )

    upload_chunk_size: int = Field(
        default=ONE_MIB,
        description="Chunk size used when staging an upload to disk",
        ge=1024,
    )

    upload_temp_dir: str | None = Field(
        default=None,
        description="Directory for staged uploads (None uses the system temp directory)",
    )

    # =========================================================================
    # Local Assets
    # =========================================================================

    assets_root: str = Field(
        default="./assets", description="Directory served under /assets (thumbnails)"
    )

    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for served assets (defaults to http://localhost:<port>)",
    )

    # =========================================================================
    # Media Tools
    # =========================================================================

    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable")

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")

    media_tool_timeout_seconds: float = Field(
        default=120.0,
        description="Wall-clock limit for a single ffprobe/ffmpeg invocation",
        gt=0,
    )

    # =========================================================================
    # Model Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"debug", "info", "warning", "error", "critical"}
        normalized = v.lower()
        if normalized not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {', '.join(valid_levels)}")
        return normalized

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Validate that app_env is a valid environment name."""
        valid_envs = {"development", "staging", "production", "testing"}
        normalized = v.lower()
        if normalized not in valid_envs:
            raise ValueError(f"Invalid app_env '{v}'. Must be one of: {', '.join(valid_envs)}")
        return normalized

    @field_validator("jwt_algorithm")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        """Only symmetric algorithms are usable with a shared secret."""
        valid_algorithms = {"HS256", "HS384", "HS512"}
        if v.upper() not in valid_algorithms:
            raise ValueError(
                f"Invalid jwt_algorithm '{v}'. Must be one of: {', '.join(valid_algorithms)}"
            )
        return v.upper()

    @field_validator("storage_reference_mode")
    @classmethod
    def validate_storage_reference_mode(cls, v: str) -> str:
        """Validate the persisted reference format."""
        normalized = v.lower()
        if normalized not in {"presigned", "cdn"}:
            raise ValueError(
                f"Invalid storage_reference_mode '{v}'. Must be 'presigned' or 'cdn'"
            )
        return normalized

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from comma-separated string if provided as string."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("s3_cf_distribution", "public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Base URLs are joined with '/', so drop any trailing slash."""
        if v is None:
            return v
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_cdn_distribution(self) -> "Settings":
        """CDN references need a distribution to prefix keys with."""
        if self.storage_reference_mode == "cdn" and not self.s3_cf_distribution:
            raise ValueError("s3_cf_distribution is required when storage_reference_mode is 'cdn'")
        return self

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def max_thumbnail_upload_bytes(self) -> int:
        """Thumbnail limit converted to bytes."""
        return self.max_thumbnail_upload_mb * ONE_MIB

    @property
    def public_assets_base_url(self) -> str:
        """Base URL that /assets paths are appended to."""
        return self.public_base_url or f"http://localhost:{self.port}"

    @property
    def use_json_logs(self) -> bool:
        """JSON logs unless running in development, overridable by json_logs."""
        if self.json_logs is not None:
            return self.json_logs
        return self.app_env != "development"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get the process-wide Settings instance.

    The HTTP layer resolves settings through this function (and tests replace
    it via ``app.dependency_overrides``); services receive the instance
    explicitly in their constructors.

    Returns:
        Settings: The cached configuration instance.
    """
    return Settings()
