"""Configuration management for timetally."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# timetally config directory
TIMETALLY_DIR = Path.home() / ".timetally"
TIMETALLY_ENV_FILE = TIMETALLY_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TIMETALLY_",
        # Later files override earlier ones
        env_file=(str(TIMETALLY_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    data_dir: Path = Field(
        default=TIMETALLY_DIR,
        description="Directory holding the timer state",
    )
    state_file: Path | None = Field(
        default=None,
        description="Path of the timer state file (default: <data_dir>/state.json)",
    )
    lock_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the state file lock",
    )

    def get_state_path(self) -> Path:
        """Get the state file path, using default if not set."""
        if self.state_file:
            return self.state_file.expanduser()
        return self.data_dir.expanduser() / "state.json"


# Global settings instance
settings = Settings()
