"""Configuration management for GroupSplit."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GROUPSPLIT_",
        case_sensitive=False,
        extra="ignore",
    )

    # Database path
    database_path: Path = Path.home() / ".groupsplit" / "groupsplit.db"

    # Logging
    log_level: str = "INFO"

    # Absorb per-share rounding drift into the last share for every split
    # kind. Off keeps derived PERCENTAGE/UNEQUAL amounts exactly as computed.
    reconcile_remainder: bool = True

    def __init__(self, **kwargs):
        """Initialize settings and create database directory if needed."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)


def load_settings() -> Settings:
    """Load application settings from environment variables."""
    try:
        return Settings()
    except Exception as e:
        raise ConfigurationError(
            f"Failed to load settings. Check the GROUPSPLIT_* environment "
            f"variables and your .env file.\n"
            f"Error: {e}"
        ) from e
