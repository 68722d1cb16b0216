import re
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sketch_timelapse.infrastructure.watching.observer import DEFAULT_IGNORE


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIMELAPSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Watching
    watch_dir: Path = Path("./src")
    ignore_pattern: str = DEFAULT_IGNORE
    stability_threshold: float = Field(default=1.5, ge=0)

    # Output
    out_dir: Path = Path("./timelapse")
    overwrite: bool = False
    pad_length: int = Field(default=5, ge=1, le=32)

    # Logging
    log: bool = True
    verbose: bool = False

    # Network
    host: str = "127.0.0.1"
    port: int = Field(default=8765, ge=0, le=65535)
    cors_allowed_origins: str = "*"

    @field_validator("ignore_pattern")
    @classmethod
    def _valid_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid ignore pattern: {e}") from e
        return value

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "INFO"

    def allowed_origins(self):
        if self.cors_allowed_origins.strip() == "*":
            return "*"
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


# Cached settings instance
_settings: Optional[Settings] = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
