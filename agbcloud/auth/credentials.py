"""Token storage for the AgbCloud CLI.

Stores session tokens in ~/.config/agbcloud/config.json (or
$AGB_CLI_CONFIG_DIR/config.json) with restrictive permissions.
"""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from .._timestamps import parse_rfc3339
from ..config import CONFIG_FILE_NAME, get_config_dir
from .types import Tokens


def get_config_path() -> Path:
    return get_config_dir() / CONFIG_FILE_NAME


def parse_expires_at(value: str) -> datetime | None:
    """Parse an RFC 3339 timestamp. Empty means "no expiry reported".

    Raises ValueError for anything else that does not parse.
    """
    if not value:
        return None
    return parse_rfc3339(value)


def _load_raw() -> dict[str, Any] | None:
    config_path = get_config_path()
    if not config_path.exists():
        return None
    try:
        data = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError):
        return None
    if not isinstance(data, dict):
        return None
    return data


def _write_raw(data: dict[str, Any]) -> None:
    """Atomic write: temp file in the same directory, then os.replace().

    - Directory: 0700
    - File: 0600
    """
    config_path = get_config_path()
    config_dir = config_path.parent
    config_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(config_dir, 0o700)

    content = json.dumps(data, indent=2)

    fd, tmp_path = tempfile.mkstemp(dir=config_dir, prefix=".config_", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, config_path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def load_tokens() -> Tokens | None:
    """Load tokens from the config file.

    Returns None if the file doesn't exist, is corrupt, or holds no usable token.
    """
    data = _load_raw()
    token = data.get("token") if data else None
    if not isinstance(token, dict):
        return None

    login_token = token.get("loginToken")
    session_id = token.get("sessionId")
    if not isinstance(login_token, str) or not isinstance(session_id, str):
        return None
    if not login_token or not session_id:
        return None

    try:
        expires_at = parse_expires_at(token.get("expiresAt") or "")
    except (TypeError, ValueError):
        expires_at = None

    return Tokens(
        login_token=login_token,
        session_id=session_id,
        keep_alive_token=str(token.get("keepAliveToken") or ""),
        expires_at=expires_at,
    )


def save_tokens(login_token: str, session_id: str, keep_alive_token: str, expires_at: str) -> Tokens:
    """Persist tokens, keeping any other keys already in the config file.

    Raises ValueError if ``expires_at`` is not RFC 3339, OSError if the
    file cannot be written.
    """
    expires = parse_expires_at(expires_at)
    data = _load_raw() or {}
    data["token"] = {
        "loginToken": login_token,
        "sessionId": session_id,
        "keepAliveToken": keep_alive_token,
        "expiresAt": expires.isoformat() if expires else "",
    }
    _write_raw(data)
    return Tokens(
        login_token=login_token,
        session_id=session_id,
        keep_alive_token=keep_alive_token,
        expires_at=expires,
    )


def clear_tokens() -> None:
    """Remove stored tokens. Does nothing when no config file exists."""
    data = _load_raw()
    if data is None:
        return
    data.pop("token", None)
    _write_raw(data)
