"""Typed return values for authentication operations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Tokens:
    """Session tokens returned by the code exchange and refresh endpoints."""

    login_token: str
    session_id: str
    keep_alive_token: str
    expires_at: datetime | None = None


@dataclass
class LoginResult:
    """Result of a login attempt.

    ``warning`` is set when the server-side login succeeded but the tokens
    could not be written locally; ``success`` stays True in that case.
    """

    success: bool
    tokens: Tokens | None = None
    error: str | None = None
    warning: str | None = None
    auth_url: str | None = None
    port: str | None = None


@dataclass
class LogoutResult:
    """Result of a logout attempt."""

    had_session: bool
    server_invalidated: bool = False
    warning: str | None = None


@dataclass
class AuthStatus:
    """Current authentication status."""

    authenticated: bool
    masked_login_token: str | None = None
    session_id: str | None = None
    expires_at: datetime | None = None
    config_path: str | None = None
