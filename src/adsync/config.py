"""Configuration management for adsync.

Uses pydantic-settings to load configuration from environment variables
(prefixed with ``ADSYNC_``) or a ``.env`` file.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_env_file() -> Path | None:
    """Search for .env file in common locations."""
    # Check current working directory and its parents (up to 5 levels)
    check_dir = Path.cwd()
    for _ in range(5):
        if (check_dir / ".env").exists():
            return check_dir / ".env"
        parent = check_dir.parent
        if parent == check_dir:
            break
        check_dir = parent

    # Check relative to this config file (src/adsync/config.py -> project root)
    project_root = Path(__file__).resolve().parent.parent.parent
    if (project_root / ".env").exists():
        return project_root / ".env"

    return None


_env_file = _find_env_file()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ADSYNC_",
        env_file=str(_env_file) if _env_file else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================
    # Environment
    # =========================
    environment: Literal["development", "staging", "production"] = "development"

    # =========================
    # Storage
    # =========================
    data_dir: Path = Field(
        default=Path("./ads_database"),
        description="Root directory of the per-page ad store",
    )

    # =========================
    # Ad Library
    # =========================
    ad_library_base_url: str = "https://www.facebook.com/ads/library/"
    default_country: str = "ALL"

    # =========================
    # Browser
    # =========================
    browser_headless: bool = True
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    viewport_width: int = 1366
    viewport_height: int = 768
    navigation_timeout_ms: int = 60000
    initial_wait_seconds: float = 5.0
    main_selector_timeout_ms: int = 10000

    # =========================
    # Scrolling
    # =========================
    max_scroll_attempts: int = Field(default=20, ge=1)
    scroll_wait_min_seconds: float = Field(default=3.0, ge=0)
    scroll_wait_max_seconds: float = Field(default=5.0, ge=0)
    max_idle_scrolls: int = Field(
        default=5,
        ge=1,
        description="Consecutive scrolls without new ads before giving up",
    )
    bottom_idle_scrolls: int = Field(
        default=2,
        ge=1,
        description="Idle scrolls tolerated once the page bottom is reached",
    )
    incremental_scrolls: int = Field(default=5, ge=0)
    incremental_scroll_wait_seconds: float = Field(default=2.0, ge=0)

    # =========================
    # Logging
    # =========================
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "text"

    @model_validator(mode="after")
    def _check_scroll_window(self) -> "Settings":
        if self.scroll_wait_max_seconds < self.scroll_wait_min_seconds:
            raise ValueError("scroll_wait_max_seconds must be >= scroll_wait_min_seconds")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
