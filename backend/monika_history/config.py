"""
Configuration management for monika-history.
"""
from typing import Optional, List, Dict, Any
from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings
import yaml
from loguru import logger

from monika_history.constants import (
    DEFAULT_DATABASE_FILENAME,
    DEFAULT_REPORT_INTERVAL_SECONDS,
    MIN_REPORT_INTERVAL_SECONDS,
)


class SymonConfig(BaseModel):
    """Symon collector connection."""
    id: str = Field(..., description="Monika instance id registered in Symon")
    url: str = Field(..., description="Symon base URL, e.g. https://symon.example.com/api/v1/monika")
    key: str = Field(..., description="API key sent as x-api-key")
    interval: int = Field(
        DEFAULT_REPORT_INTERVAL_SECONDS,
        ge=MIN_REPORT_INTERVAL_SECONDS,
        description="Seconds between report cycles"
    )


class MonikaConfig(BaseModel):
    """
    Loaded Monika configuration.

    Only the parts this package reads are typed. Everything else in the
    document is kept as extra fields so the config fingerprint covers it.
    """
    version: Optional[str] = Field(None, description="Operator supplied config version")
    probes: List[Dict[str, Any]] = Field(default_factory=list)
    notifications: List[Dict[str, Any]] = Field(default_factory=list)
    symon: Optional[SymonConfig] = None

    class Config:
        extra = "allow"


class Settings(BaseSettings):
    """Process settings loaded from environment and .env file."""

    # Application
    app_name: str = "monika-history"
    app_version: str = Field(default_factory=lambda: __import__('monika_history').__version__)
    debug: bool = False

    # Admin API
    host: str = "127.0.0.1"
    port: int = 3001

    # History database (SQLite file)
    database_path: str = Field(
        DEFAULT_DATABASE_FILENAME,
        description="History database file, relative paths resolve against the working directory"
    )

    # Monika configuration document
    config_file: Optional[str] = Field(None, description="Path to monika.yml / monika.json")

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = Field(None, description="Rotating log file, disabled when unset")

    class Config:
        env_prefix = "MONIKA_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_nested_delimiter = "__"

    def resolved_database_path(self) -> Path:
        """Database path made absolute against the working directory."""
        return Path(self.database_path).expanduser().resolve()


def load_config(path: str | Path) -> MonikaConfig:
    """
    Load a Monika configuration file.

    YAML and JSON are both accepted (JSON is valid YAML).

    Args:
        path: Config file location

    Returns:
        Parsed MonikaConfig

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the document is not a mapping
    """
    config_path = Path(path)
    with config_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping, got {type(data).__name__}")

    config = MonikaConfig(**data)
    logger.info(f"Loaded configuration from {config_path} ({len(config.probes)} probe(s))")
    return config


# Global settings instance
settings = Settings()
