"""
Application settings.

Settings are read from environment variables (a local .env file is loaded
first when present) and fall back to defaults. The field catalog and the
default group seeds are static module data and are not configurable here.
"""
import logging
import os
import sys
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseModel):
    """Runtime configuration for the card API."""

    app_name: str = Field(default="Digital Business Card API")

    database_url: Optional[str] = Field(
        default=None,
        description="MongoDB connection string; in-memory storage is used when unset"
    )

    database_name: Optional[str] = Field(default=None, description="MongoDB database name")

    port: int = Field(default=8000)

    log_level: str = Field(default="INFO")

    snapshot_ttl_seconds: float = Field(
        default=10.0,
        description="Staleness window of cached owner snapshots for public views; 0 disables the cache"
    )

    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @property
    def database_configured(self) -> bool:
        return bool(self.database_url and self.database_name)


def _parse_origins(value: Optional[str]) -> List[str]:
    if not value:
        return ["*"]
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def load_settings() -> Settings:
    return Settings(
        database_url=os.getenv("DATABASE_URL") or None,
        database_name=os.getenv("DATABASE_NAME") or None,
        port=int(os.getenv("PORT", "8000")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        snapshot_ttl_seconds=float(os.getenv("SNAPSHOT_TTL_SECONDS", "10")),
        cors_origins=_parse_origins(os.getenv("CORS_ORIGINS")),
    )


def configure_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


settings = load_settings()
