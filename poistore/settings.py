"""
Configuration settings for the POI store using Pydantic Settings.

Values are read from environment variables (or a ``.env`` file) with type
validation and defaults, so the same code can point at a local SQLite file or
a PostgreSQL server without changes.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class StoreSettings(BaseSettings):
    """
    Settings for the POI persistence engine.

    The backend decides how ``poi_store_path`` is interpreted: a file path
    for SQLite, ignored for PostgreSQL (which is configured through the
    ``postgres_*`` fields).
    """

    poi_store_backend: str = Field(
        default="sqlite",
        alias="POI_STORE_BACKEND",
        description="Backing store engine (sqlite, postgresql)"
    )
    poi_store_path: str = Field(
        default="pois.sqlite",
        alias="POI_STORE_PATH",
        description="Path of the SQLite POI file"
    )
    poi_store_read_only: bool = Field(
        default=False,
        alias="POI_STORE_READ_ONLY",
        description="Open the store without creating or modifying it"
    )
    poi_store_default_limit: int = Field(
        default=100,
        alias="POI_STORE_DEFAULT_LIMIT",
        description="Default maximum number of POIs returned by a rectangle search (<= 0 means no limit)"
    )
    poi_store_echo_sql: bool = Field(
        default=False,
        alias="POI_STORE_ECHO_SQL",
        description="Log every SQL statement emitted by the engine"
    )
    poi_store_log_config: Optional[str] = Field(
        default=None,
        alias="POI_STORE_LOG_CONFIG",
        description="Path of a YAML logging configuration file"
    )

    # PostgreSQL backend
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_database: str = Field(default="poistore", alias="POSTGRES_DATABASE")
    postgres_user: str = Field(default="poistore", alias="POSTGRES_USER")
    postgres_password: str = Field(default="", alias="POSTGRES_PASSWORD")
    postgres_pool_size: int = Field(
        default=1,
        alias="POSTGRES_POOL_SIZE",
        description="Connections kept by the engine; a manager only ever holds one"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "populate_by_name": True,
        "extra": "ignore",
    }

    def get_postgres_url(self) -> str:
        """Build the asyncpg database URL from the postgres_* fields."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_database}"
        )


# Global settings instance
_settings: Optional[StoreSettings] = None


def get_settings() -> StoreSettings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Validated StoreSettings instance
    """
    global _settings
    if _settings is None:
        _settings = StoreSettings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing)."""
    global _settings
    _settings = None
