"""Configuration Management

Centralized configuration using Pydantic settings with environment variable support,
plus the per-book configuration read from ``_bookdown.yml``.
"""

from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

BOOKDOWN_CONFIG_FILE = "_bookdown.yml"


def default_filter_path() -> Path:
    """Location of the xref Lua filter shipped with the package."""
    return Path(str(resources.files("xref_index") / "resources" / "xref.lua"))


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Project Configuration
    book_root: Path = Field(default_factory=Path.cwd, description="Root directory of the book project")
    scratch_dir: Path = Field(
        default=Path("~/.cache/xref-index"),
        description="Scratch directory holding per-project index caches"
    )
    document_extension: str = Field(default=".rmd", description="Extension (lowercase) of indexed documents")

    # Renderer Configuration
    pandoc_path: str = Field(default="pandoc", description="Pandoc executable")
    pandoc_from_format: str = Field(default="markdown-auto_identifiers", description="Pandoc input format")
    xref_filter_path: Optional[Path] = Field(default=None, description="Lua filter emitting xref entries")
    render_timeout_seconds: float = Field(default=30.0, description="Maximum wait for a single render")
    max_concurrent_renders: int = Field(default=2, description="Maximum concurrent renderer processes")

    # Monitoring Configuration
    settle_delay_seconds: float = Field(default=0.5, description="Quiet period before dispatching changes")
    initial_scan_delay_seconds: float = Field(default=3.0, description="Grace window for the initial scan")
    monitor_poll_interval_seconds: float = Field(default=0.25, description="Change processing loop tick")

    # Book Context Detection
    rscript_path: str = Field(default="Rscript", description="Rscript executable used for package probes")
    require_bookdown_package: bool = Field(default=True, description="Only monitor when bookdown is installed")
    package_probe_timeout_seconds: float = Field(default=15.0, description="Timeout for the bookdown probe")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="structured", description="Log format: structured or text")
    log_file: Optional[str] = Field(default=None, description="Log file path")

    # Development
    debug: bool = Field(default=False, description="Enable debug mode")

    @computed_field
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.log_level == "DEBUG" or self.debug

    @computed_field
    @property
    def filter_path(self) -> Path:
        """Configured Lua filter, falling back to the packaged one."""
        return self.xref_filter_path or default_filter_path()

    def get_renderer_config(self) -> dict:
        """Get renderer configuration as dict."""
        return {
            "pandoc_path": self.pandoc_path,
            "from_format": self.pandoc_from_format,
            "filter_path": self.filter_path,
            "timeout": self.render_timeout_seconds,
            "max_concurrent": self.max_concurrent_renders,
        }

    def get_monitor_config(self) -> dict:
        """Get change monitor configuration as dict."""
        return {
            "settle_delay": self.settle_delay_seconds,
            "initial_scan_delay": self.initial_scan_delay_seconds,
            "poll_interval": self.monitor_poll_interval_seconds,
        }


class BookConfig:
    """Book configuration loaded from ``_bookdown.yml``."""

    def __init__(self, book_root: Path):
        self.config_path = Path(book_root) / BOOKDOWN_CONFIG_FILE
        self._config_data: Optional[dict] = None
        self._loaded_mtime: Optional[float] = None

    @property
    def exists(self) -> bool:
        return self.config_path.exists()

    def load(self) -> dict:
        """Load configuration from the YAML file, re-reading it after edits."""
        try:
            mtime = self.config_path.stat().st_mtime
        except FileNotFoundError:
            mtime = None

        if self._config_data is None or mtime != self._loaded_mtime:
            if mtime is not None:
                with open(self.config_path, 'r', encoding='utf-8') as f:
                    self._config_data = yaml.safe_load(f) or {}
            else:
                self._config_data = {}
            self._loaded_mtime = mtime

        return self._config_data

    def get(self, key: str, default=None) -> Any:
        """Get configuration value by key (supports dot notation)."""
        config = self.load()
        keys = key.split('.')

        current = config
        for k in keys:
            if isinstance(current, dict) and k in current:
                current = current[k]
            else:
                return default

        return current

    def get_rmd_files(self) -> Optional[List[str]]:
        """Explicit chapter list, or None when the book relies on discovery.

        ``rmd_files`` may be a plain list or a per-format mapping; for the
        mapping form the ``html`` list is used.
        """
        rmd_files = self.get("rmd_files")
        if rmd_files is None:
            return None
        if isinstance(rmd_files, dict):
            rmd_files = rmd_files.get("html") or []
        if isinstance(rmd_files, str):
            rmd_files = [rmd_files]
        return [str(f) for f in rmd_files]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

