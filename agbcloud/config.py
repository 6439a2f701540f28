"""Configuration helpers for the AgbCloud CLI."""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ENDPOINT = "agb.cloud"
DEFAULT_TIMEOUT_SECONDS = 30.0
UPLOAD_TIMEOUT_SECONDS = 60.0

ENDPOINT_ENV_VAR = "AGB_CLI_ENDPOINT"
SKIP_SSL_VERIFY_ENV_VAR = "AGB_CLI_SKIP_SSL_VERIFY"
CONFIG_DIR_ENV_VAR = "AGB_CLI_CONFIG_DIR"

CONFIG_DIR_NAME = "agbcloud"
CONFIG_FILE_NAME = "config.json"

# Long-running image operations
POLL_INTERVAL_SECONDS = 5.0
POLL_TIMEOUT_SECONDS = 45 * 60.0


def sanitize_base_url(url: str) -> str:
    """Ensure the base URL has a scheme and never ends with a trailing slash."""

    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")


def get_base_url() -> str:
    """Resolve the API endpoint from AGB_CLI_ENDPOINT, falling back to agb.cloud."""
    return sanitize_base_url(os.environ.get(ENDPOINT_ENV_VAR) or DEFAULT_ENDPOINT)


def should_verify_ssl() -> bool:
    """SSL verification is on unless AGB_CLI_SKIP_SSL_VERIFY is exactly "true"."""
    return os.environ.get(SKIP_SSL_VERIFY_ENV_VAR, "") != "true"


def get_config_dir() -> Path:
    override = os.environ.get(CONFIG_DIR_ENV_VAR)
    if override:
        return Path(override)
    return Path.home() / ".config" / CONFIG_DIR_NAME
