"""Configuration management for the VoteSnap service.

Loads and validates YAML configuration with sensible defaults
for the database, image storage, OCR, preprocessing, and admin access.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ServerConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: str = "0.0.0.0"
    port: int = 8000


class DatabaseConfig(BaseModel):
    """Configuration for the relational store.

    Any SQLAlchemy URL is accepted, so a direct MySQL or PostgreSQL
    driver can be used instead of the default SQLite file.
    """

    url: str = "sqlite:///votesnap.db"
    echo: bool = False
    seed_demo_data: bool = False


class StorageConfig(BaseModel):
    """Configuration for uploaded DR-form images."""

    media_dir: str = "media"
    public_prefix: str = "/media"
    max_upload_bytes: int = 5 * 1024 * 1024
    allowed_content_types: list[str] = Field(
        default_factory=lambda: ["image/png", "image/jpeg", "image/webp", "image/tiff"]
    )


class OCRConfig(BaseModel):
    """Configuration for Tesseract OCR and image fetching."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm_attempts: list[int] = Field(default_factory=lambda: [3, 6, 4])
    fetch_timeout: float = 30.0
    max_image_bytes: int = 10 * 1024 * 1024


class PreprocessingConfig(BaseModel):
    """Configuration for image preprocessing before OCR."""

    target_width: int = 2000
    denoise_enabled: bool = True
    denoise_method: str = "bilateral"
    binarize_enabled: bool = True
    binarize_method: str = "otsu"


class AuthConfig(BaseModel):
    """Hardcoded administrator credentials."""

    admin_username: str = "admin"
    admin_password: str = "password123"


class RealtimeConfig(BaseModel):
    """Configuration for the in-process change feed."""

    history_size: int = 500


class AppConfig(BaseModel):
    """Top-level application configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    preprocessing: PreprocessingConfig = Field(default_factory=PreprocessingConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = Path("configs/config.yaml")

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
