"""Application configuration settings.

All configuration values are loaded from environment variables (.env file).
No sensitive values should be hardcoded here.
"""

from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    PROJECT_NAME: str = "Community Market API"
    VERSION: str = "0.1.0"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False

    # CORS
    CORS_ORIGINS: list[str] = []

    # Tracing (optional OTLP collector)
    OTLP_ENDPOINT: Optional[str] = None

    # Celery broker/backend, only used when INGEST_ASYNC is enabled
    REDIS_URL: str = "redis://localhost:6379/0"
    INGEST_ASYNC: bool = False
    # Seconds before a background run is asked to stop (hard kill follows 120s later)
    INGEST_TASK_SOFT_TIME_LIMIT: int = 3480

    # Local staging of raw uploads
    STAGING_ROOT: str = "./staging"
    # STAGING_COLLISION_POLICY: reject, suffix
    STAGING_COLLISION_POLICY: str = "reject"

    # FFmpeg / HLS packaging
    FFMPEG_PATH: str = "ffmpeg"
    HLS_SEGMENT_SECONDS: int = 10
    HLS_LIST_SIZE: int = 0  # 0 keeps every segment in the playlist
    TRANSCODE_TIMEOUT_SECONDS: Optional[float] = None

    # Storage Configuration
    # STORAGE_BACKEND: local, s3, minio
    STORAGE_BACKEND: str = "local"

    # Local Storage (when STORAGE_BACKEND=local)
    LOCAL_STORAGE_PATH: str = "./storage"

    # S3/MinIO/Compatible Storage (when STORAGE_BACKEND=s3 or minio)
    STORAGE_BUCKET: str = ""
    STORAGE_REGION: str = ""
    STORAGE_ACCESS_KEY: str = ""
    STORAGE_SECRET_KEY: str = ""
    STORAGE_ENDPOINT_URL: Optional[str] = None  # Required for MinIO
    STORAGE_USE_SSL: bool = True

    # Key prefix for published HLS artifacts
    STORAGE_KEY_PREFIX: str = "videos"

    # CDN Configuration (optional, for any backend)
    CDN_DOMAIN: Optional[str] = None
    CDN_ENABLED: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
