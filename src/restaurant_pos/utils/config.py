"""
Where the Restaurant POS database lives.

Production keeps its SQLite file under ``~/Documents/RestaurantPOS``;
development keeps it in the project's ``data/`` directory. Any SQLAlchemy
URL can replace the file, through ``RESTAURANT_POS_DATABASE_URL`` or the
CLI's ``--database-url``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import (
    APP_NAME,
    APP_VERSION,
    DATABASE_FILENAME,
    DATABASE_VERSION,
    ENV_VAR_DATABASE_URL,
    ENV_VAR_ENVIRONMENT,
)

logger = logging.getLogger(__name__)

ENVIRONMENTS = ("production", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Config:
    """
    Database location for one environment.

    Args:
        environment: 'production' or 'development'
        database_url: SQLAlchemy URL used instead of the environment's SQLite file

    Raises:
        ValueError: For an unknown environment
    """

    app_name = APP_NAME
    app_version = APP_VERSION
    database_version = DATABASE_VERSION

    def __init__(self, environment: str = "production", database_url: Optional[str] = None):
        if environment not in ENVIRONMENTS:
            raise ValueError(
                f"Unknown environment '{environment}', expected one of: {', '.join(ENVIRONMENTS)}"
            )
        self.environment = environment
        self._url_override = database_url or None

        if environment == "development":
            self.data_dir = PROJECT_ROOT / "data"
        else:
            self.data_dir = Path.home() / "Documents" / "RestaurantPOS"

    @property
    def database_path(self) -> Path:
        return self.data_dir / DATABASE_FILENAME

    @property
    def database_url(self) -> str:
        if self._url_override:
            return self._url_override
        # SQLAlchemy wants forward slashes, Windows paths included
        return "sqlite:///" + self.database_path.as_posix()

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def ensure_directories(self) -> None:
        """Create the data directory unless an explicit URL is in use."""
        if self._url_override is None:
            self.data_dir.mkdir(parents=True, exist_ok=True)

    def database_exists(self) -> bool:
        """Whether the SQLite file is already there. Always True for an explicit URL."""
        return bool(self._url_override) or self.database_path.exists()

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None, database_url: Optional[str] = None) -> Config:
    """
    Process-wide configuration.

    The first call fixes it: arguments left as None fall back to
    ``RESTAURANT_POS_ENV`` (default production) and
    ``RESTAURANT_POS_DATABASE_URL``. Later calls return the same instance
    and only warn if asked for a different environment.
    """
    global _config_instance

    if _config_instance is not None:
        if environment is not None and environment != _config_instance.environment:
            logger.warning(
                f"Config already exists for environment '{_config_instance.environment}'; "
                f"ignoring requested environment '{environment}'"
            )
        return _config_instance

    _config_instance = Config(
        environment or os.environ.get(ENV_VAR_ENVIRONMENT, "production"),
        database_url=database_url or os.environ.get(ENV_VAR_DATABASE_URL),
    )
    return _config_instance


def reset_config() -> None:
    """Forget the process-wide configuration; the next get_config() rebuilds it."""
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    return get_config().database_url
