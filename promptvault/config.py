"""
Centralized configuration for PromptVault.

All configuration is loaded from environment variables with sensible defaults.

Usage:
    from promptvault.config import get_config
    cfg = get_config()
    print(cfg.home)              # "/home/user/.promptvault" or $PROMPTVAULT_HOME
    print(cfg.debounce_seconds)  # 1.5
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_API_BASE = "https://api.github.com"
DEFAULT_BLOB_NAME = "promptvault_data.json"


@dataclass(frozen=True)
class VaultConfig:
    """Top-level PromptVault configuration."""

    # Local state
    home: Path = field(default_factory=lambda: Path.home() / ".promptvault")

    # Remote store (GitHub Gists)
    api_base: str = DEFAULT_API_BASE
    blob_name: str = DEFAULT_BLOB_NAME
    page_size: int = 100
    max_pages: int = 3
    http_timeout: float = 15.0

    # Sync
    debounce_seconds: float = 1.5

    log_level: str = "WARNING"

    @property
    def store_path(self) -> Path:
        """JSON file backing the key-value store."""
        return self.home / "store.json"

    @classmethod
    def from_env(cls) -> VaultConfig:
        return cls(
            home=Path(os.environ.get("PROMPTVAULT_HOME", Path.home() / ".promptvault")),
            api_base=os.environ.get("PROMPTVAULT_API_BASE", DEFAULT_API_BASE).rstrip("/"),
            blob_name=os.environ.get("PROMPTVAULT_BLOB_NAME", DEFAULT_BLOB_NAME),
            page_size=int(os.environ.get("PROMPTVAULT_PAGE_SIZE", "100")),
            max_pages=int(os.environ.get("PROMPTVAULT_MAX_PAGES", "3")),
            http_timeout=float(os.environ.get("PROMPTVAULT_HTTP_TIMEOUT", "15.0")),
            debounce_seconds=float(os.environ.get("PROMPTVAULT_DEBOUNCE_SECONDS", "1.5")),
            log_level=os.environ.get("PROMPTVAULT_LOG_LEVEL", "WARNING").upper(),
        )


# Singleton
_config: VaultConfig | None = None


def get_config() -> VaultConfig:
    """Get or create the singleton config from environment variables."""
    global _config
    if _config is not None:
        return _config
    _config = VaultConfig.from_env()
    return _config


def reset_config() -> None:
    """Clear the cached config (for testing)."""
    global _config
    _config = None
