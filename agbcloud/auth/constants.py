"""Constants for AgbCloud authentication."""

from __future__ import annotations

# OAuth parameters understood by /api/oauth/login_provider
LOGIN_CLIENT = "CLI"
OAUTH_PROVIDER = "GOOGLE_LOCALHOST"

# Callback server. The redirect URI minted by the server always uses
# localhost, so bind the loopback address only.
CALLBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/callback"
DEFAULT_CALLBACK_PORT = "3000"
AUTH_TIMEOUT_SECONDS = 300
# Lets the browser finish rendering the success page before the socket closes
SHUTDOWN_GRACE_SECONDS = 0.5

# Refresh tokens that expire within this window
REFRESH_WINDOW_SECONDS = 5 * 60

# Error messages
ERROR_AUTH_TIMEOUT = "authentication timeout: please try again"
ERROR_MISSING_CODE = "No authorization code received"
ERROR_EMPTY_OAUTH_URL = "received empty OAuth URL from server"
ERROR_NOT_AUTHENTICATED = "Not authenticated. Run 'agbcloud login' first."
ERROR_REAUTHENTICATE = "Run 'agbcloud login' to reauthenticate"


def build_redirect_origin(port: str) -> str:
    """Origin sent as ``fromUrlPath`` when requesting the OAuth URL."""
    return f"http://localhost:{port}"
