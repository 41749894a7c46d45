import logging

from pydantic import model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

STORAGE_BACKENDS = ("local", "s3")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Show data
    data_file: str = "data/uploads/showData.json"

    # Asset storage
    storage_backend: str = "local"  # "local" or "s3"
    uploads_dir: str = "data/uploads"
    uploads_url_prefix: str = "/uploads"

    # S3 (storage_backend = "s3")
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "ap-south-1"
    aws_s3_bucket_name: str = ""
    s3_endpoint_url: str = ""  # MinIO or other S3-compatible endpoint

    # Upload limits
    max_thumbnail_mb: int = 50
    max_media_mb: int = 500
    max_music_mb: int = 100
    max_media_files: int = 50  # per media upload request

    # Web server
    host: str = "127.0.0.1"
    port: int = 3001

    # Logs
    logs_dir: str = "data/logs"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @model_validator(mode="after")
    def _check_storage_backend(self) -> "Settings":
        """Reject an unknown backend or an S3 backend missing credentials."""
        self.storage_backend = self.storage_backend.lower()
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, "
                f"got '{self.storage_backend}'"
            )
        missing = self.missing_s3_settings
        if self.storage_backend == "s3" and missing:
            raise ValueError(
                "S3 storage requires these environment variables: " + ", ".join(missing)
            )
        if self.storage_backend == "s3":
            logger.debug(
                "S3 storage: bucket=%s region=%s", self.aws_s3_bucket_name, self.aws_region
            )
        return self

    @property
    def missing_s3_settings(self) -> list[str]:
        required = {
            "AWS_ACCESS_KEY_ID": self.aws_access_key_id,
            "AWS_SECRET_ACCESS_KEY": self.aws_secret_access_key,
            "AWS_S3_BUCKET_NAME": self.aws_s3_bucket_name,
        }
        return [name for name, value in required.items() if not value]


def get_settings() -> Settings:
    return Settings()
