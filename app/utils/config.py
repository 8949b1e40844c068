"""
Configuration management for AutoConvert.

Uses pydantic-settings to load configuration from environment variables
and .env files.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API Configuration
    api_port: int = 8000
    log_level: str = "INFO"
    api_title: str = "AutoConvert API"
    api_version: str = "1.0.0"

    # Watch Configuration
    watch_folder: Optional[Path] = None  # used only when nothing is persisted
    start_enabled: bool = False

    # Persistence
    state_file: Path = Path("~/.config/autoconvert/state.json")
    templates_file: Path = Path("config/conversion_templates.json")

    # External tools
    tool_search_paths: str = "/opt/homebrew/bin,/usr/local/bin,/usr/bin"
    known_tools: str = "ffmpeg,cwebp,magick"

    # Worker Configuration
    max_workers: int = 2

    model_config = SettingsConfigDict(
        env_prefix="AUTOCONVERT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def get_tool_search_paths(self) -> list[Path]:
        """Parse tool search paths into list of Paths."""
        return [
            Path(p.strip()).expanduser()
            for p in self.tool_search_paths.split(',')
            if p.strip()
        ]

    def get_known_tools(self) -> list[str]:
        """Parse known tool names into list."""
        return [t.strip() for t in self.known_tools.split(',') if t.strip()]

    def get_state_file(self) -> Path:
        """State file with the user directory expanded."""
        return self.state_file.expanduser()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
