"""
Root-level shared test fixtures.

Inherited by the package-local suites (promptvault/*/tests) and tests/.
"""

from __future__ import annotations

import pytest

from promptvault.config import reset_config


@pytest.fixture
def clean_env(monkeypatch):
    """Remove PromptVault env vars that leak between tests."""
    for key in [
        "PROMPTVAULT_HOME",
        "PROMPTVAULT_API_BASE",
        "PROMPTVAULT_BLOB_NAME",
        "PROMPTVAULT_PAGE_SIZE",
        "PROMPTVAULT_MAX_PAGES",
        "PROMPTVAULT_HTTP_TIMEOUT",
        "PROMPTVAULT_DEBOUNCE_SECONDS",
        "PROMPTVAULT_LOG_LEVEL",
    ]:
        monkeypatch.delenv(key, raising=False)
    reset_config()
    yield
    reset_config()
