"""Application configuration loaded from environment variables or a .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

__all__ = ["Settings", "settings"]

logger = logging.getLogger(__name__)


def load_env_file(path: Path) -> None:
    """Load key-value pairs from ``path`` into ``os.environ`` if present."""
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


# Load environment variables from a .env file in the project root.
load_env_file(Path(__file__).resolve().parents[2] / ".env")


@dataclass
class Settings:
    """Application settings."""

    log_level: str = ""
    mongodb_uri: str | None = None
    db_name: str | None = None
    host: str = ""
    port: int = 8000

    # Reports from this sender purge their letter immediately.
    admin_uuid: str | None = None

    def __post_init__(self):
        """Load values from environment variables after initialization."""
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.mongodb_uri = os.getenv("MONGODB_URI") or None
        self.db_name = os.getenv("DB_NAME") or None
        self.host = os.getenv("HOST", "0.0.0.0")
        self.port = int(os.getenv("PORT", "8000"))
        self.admin_uuid = os.getenv("ADMIN_UUID") or None

    def validate_storage_config(self) -> None:
        """Validate the database and listener configuration.

        Raises:
            ValueError: If the MongoDB connection string or database name is
                       missing, or if the port is out of range.
        """
        if not self.mongodb_uri or not self.mongodb_uri.strip():
            raise ValueError(
                "MongoDB connection string not configured. Please set the MONGODB_URI "
                "environment variable or add it to your .env file."
            )

        if not self.mongodb_uri.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "Invalid MongoDB connection string. It should start with "
                "'mongodb://' or 'mongodb+srv://'."
            )

        if not self.db_name or not self.db_name.strip():
            raise ValueError(
                "Database name not configured. Please set the DB_NAME environment variable."
            )

        if not 0 < self.port < 65536:
            raise ValueError(
                f"Invalid port value: {self.port}. Must be between 1 and 65535."
            )

        if self.admin_uuid is None:
            logger.warning(
                "ADMIN_UUID is not set; administrator reports will not purge letters."
            )


settings = Settings()

# Configure root logging according to the resolved settings.
logging.basicConfig(level=settings.log_level)
