"""Authentication utilities for the AgbCloud CLI.

Lightweight imports (credentials, types, ports) are eager. Heavyweight imports
(flow and the callback server pull in http.server, threading, webbrowser) are
lazy to avoid penalizing SDK users who never use the browser login.
"""

from .credentials import clear_tokens, get_config_path, load_tokens, save_tokens
from .ports import is_port_occupied, parse_alternative_ports, select_port
from .types import AuthStatus, LoginResult, LogoutResult, Tokens

_FLOW_EXPORTS = ("get_auth_status", "refresh_tokens_if_needed", "run_login_flow", "run_logout")


def __getattr__(name: str):
    if name in _FLOW_EXPORTS:
        from . import flow

        return getattr(flow, name)
    if name in ("CallbackResult", "CallbackServer", "await_callback"):
        from . import callback_server

        return getattr(callback_server, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "await_callback",
    "clear_tokens",
    "get_auth_status",
    "get_config_path",
    "is_port_occupied",
    "load_tokens",
    "parse_alternative_ports",
    "refresh_tokens_if_needed",
    "run_login_flow",
    "run_logout",
    "save_tokens",
    "select_port",
    "AuthStatus",
    "CallbackResult",
    "CallbackServer",
    "LoginResult",
    "LogoutResult",
    "Tokens",
]
