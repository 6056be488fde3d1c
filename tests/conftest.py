"""Shared test fixtures for the VoteSnap test suite."""

from pathlib import Path

import numpy as np
import pytest

from src.db.database import Database
from src.realtime.feed import ChangeFeed
from src.services.votes import VoteService
from src.utils.config import AppConfig, DatabaseConfig, StorageConfig


@pytest.fixture
def sample_image() -> np.ndarray:
    """Create a simple synthetic grayscale test image."""
    image = np.zeros((200, 300), dtype=np.uint8)
    image[50:150, 50:250] = 255
    return image


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Configuration with an in-memory database and a temporary media dir."""
    return AppConfig(
        database=DatabaseConfig(url="sqlite://"),
        storage=StorageConfig(media_dir=str(tmp_path / "media")),
    )


@pytest.fixture
def database(app_config: AppConfig) -> Database:
    db = Database(app_config.database)
    db.create_all()
    return db


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed(history_size=50)


@pytest.fixture
def service(database: Database, feed: ChangeFeed) -> VoteService:
    return VoteService(database, feed)
