"""Browser-based OAuth login, token refresh and logout for AgbCloud.

Login: OAuth URL -> callback port -> browser -> callback -> code exchange -> save tokens.
All functions return typed results and never print directly (callers handle presentation).
"""

from __future__ import annotations

import logging
import webbrowser
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable

import httpx

from ..exceptions import AgbCloudError, AuthenticationError, NoPortAvailableError
from .callback_server import CallbackServer
from .constants import (
    AUTH_TIMEOUT_SECONDS,
    DEFAULT_CALLBACK_PORT,
    ERROR_EMPTY_OAUTH_URL,
    ERROR_NOT_AUTHENTICATED,
    ERROR_REAUTHENTICATE,
    REFRESH_WINDOW_SECONDS,
    build_redirect_origin,
)
from .credentials import clear_tokens, get_config_path, load_tokens, parse_expires_at, save_tokens
from .ports import select_port
from .types import AuthStatus, LoginResult, LogoutResult, Tokens

if TYPE_CHECKING:
    from ..client import AgbCloudClient

logger = logging.getLogger(__name__)


def _resolve_login_url(client: AgbCloudClient, default_port: str) -> tuple[str, str]:
    """Return ``(invoke_url, port)``.

    The first request carries no port. Only when the default port turns out
    to be occupied is a second URL minted for the chosen alternative, because
    the server embeds the port into the redirect URI.
    """
    data = client.oauth.get_login_provider_url(build_redirect_origin(default_port))
    port = select_port(default_port, data.get("alternativePorts") or "")

    if port != default_port:
        logger.info("Requesting OAuth URL for alternative port %s", port)
        data = client.oauth.get_login_provider_url(build_redirect_origin(port), localhost_port=port)

    invoke_url = data.get("invokeUrl") or ""
    if not invoke_url:
        raise AgbCloudError(ERROR_EMPTY_OAUTH_URL)
    return invoke_url, port


def run_login_flow(
    client: AgbCloudClient,
    *,
    default_port: str = DEFAULT_CALLBACK_PORT,
    callback_timeout: float = AUTH_TIMEOUT_SECONDS,
    open_browser: Callable[[str], bool] = webbrowser.open,
    on_auth_url: Callable[[str, str], None] | None = None,
) -> LoginResult:
    """Run the full browser login.

    Args:
        client: API client used for the OAuth calls.
        default_port: Preferred callback port.
        callback_timeout: Seconds to wait for the browser redirect.
        open_browser: Launches the browser; a False return or an error is
            not fatal since the URL is also handed to ``on_auth_url``.
        on_auth_url: Called with ``(url, port)`` once the callback server is
            listening, before the browser is launched.

    Returns a LoginResult. A failure to write tokens locally is reported
    through ``warning`` and does not undo the login.
    """
    try:
        auth_url, port = _resolve_login_url(client, default_port)
    except NoPortAvailableError as e:
        return LoginResult(success=False, error=str(e))
    except (AgbCloudError, httpx.HTTPError) as e:
        return LoginResult(success=False, error=f"failed to get OAuth URL: {e}")

    try:
        server = CallbackServer(port)
    except OSError as e:
        return LoginResult(
            success=False,
            error=f"failed to start callback server on port {port}: {e}",
            auth_url=auth_url,
            port=port,
        )

    with server:
        server.start()
        if on_auth_url is not None:
            on_auth_url(auth_url, port)
        try:
            opened = open_browser(auth_url)
        except webbrowser.Error as e:
            logger.debug("Browser launch raised: %s", e)
            opened = False
        if not opened:
            logger.warning("Could not open browser. Open this URL manually:\n  %s", auth_url)
        callback = server.wait(callback_timeout)

    if not callback.success:
        return LoginResult(success=False, error=callback.error, auth_url=auth_url, port=port)

    try:
        data = client.oauth.login_translate(callback.code, localhost_port=port)
    except (AgbCloudError, httpx.HTTPError) as e:
        return LoginResult(
            success=False,
            error=f"failed to exchange code for token: {e}",
            auth_url=auth_url,
            port=port,
        )

    login_token = data.get("loginToken") or ""
    session_id = data.get("sessionId") or ""
    keep_alive_token = data.get("keepAliveToken") or ""
    expires_at = data.get("expiresAt") or ""

    try:
        tokens = save_tokens(login_token, session_id, keep_alive_token, expires_at)
    except (OSError, ValueError) as e:
        logger.warning("Failed to save tokens: %s", e)
        try:
            parsed_expiry = parse_expires_at(expires_at)
        except ValueError:
            parsed_expiry = None
        return LoginResult(
            success=True,
            tokens=Tokens(login_token, session_id, keep_alive_token, parsed_expiry),
            warning=f"You are logged in, but tokens were not saved to the config file: {e}",
            auth_url=auth_url,
            port=port,
        )

    return LoginResult(success=True, tokens=tokens, auth_url=auth_url, port=port)


def needs_refresh(tokens: Tokens, now: datetime | None = None) -> bool:
    """True when the login token expires within the refresh window.

    Tokens without a reported expiry are never refreshed.
    """
    if tokens.expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    expires_at = tokens.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at - now <= timedelta(seconds=REFRESH_WINDOW_SECONDS)


def refresh_tokens_if_needed(client: AgbCloudClient) -> Tokens:
    """Refresh the stored tokens when they are about to expire.

    The refreshed tokens are saved and installed on ``client``. If the
    server refuses the refresh the local tokens are cleared.

    Raises:
        AuthenticationError: no tokens are stored or the refresh failed.
    """
    tokens = load_tokens()
    if tokens is None:
        raise AuthenticationError(ERROR_NOT_AUTHENTICATED)

    if not needs_refresh(tokens):
        logger.debug("Token is still valid, no refresh needed")
        client.tokens = tokens
        return tokens

    logger.info("Token is approaching expiry, refreshing...")
    try:
        data = client.oauth.refresh(tokens.keep_alive_token, tokens.session_id)
    except (AgbCloudError, httpx.HTTPError, ValueError) as e:
        clear_tokens()
        raise AuthenticationError(f"{ERROR_REAUTHENTICATE}: {e}") from e

    refreshed = save_tokens(
        data.get("loginToken") or "",
        data.get("sessionId") or tokens.session_id,
        data.get("keepAliveToken") or tokens.keep_alive_token,
        data.get("expiresAt") or "",
    )
    logger.info("Token refreshed successfully")
    client.tokens = refreshed
    return refreshed


def run_logout(client: AgbCloudClient) -> LogoutResult:
    """Invalidate the server session if there is one, then clear local tokens.

    Server-side failures only produce a warning. Raises OSError if the
    local config cannot be rewritten.
    """
    tokens = load_tokens()
    if tokens is None:
        clear_tokens()
        return LogoutResult(had_session=False)

    result = LogoutResult(had_session=True)
    try:
        client.oauth.logout(tokens.login_token, tokens.session_id)
        result.server_invalidated = True
    except (AgbCloudError, httpx.HTTPError) as e:
        logger.warning("Could not invalidate server session: %s", e)
        result.warning = f"Could not invalidate server session: {e}"

    clear_tokens()
    return result


def _mask_key(key: str) -> str:
    if len(key) >= 16:
        return key[:4] + "..." + key[-4:]
    if len(key) >= 8:
        return key[:4] + "..."
    return "***"


def get_auth_status() -> AuthStatus:
    """Check current authentication status.

    Returns an AuthStatus; never prints directly.
    """
    config_path = str(get_config_path())
    tokens = load_tokens()
    if tokens is None:
        return AuthStatus(authenticated=False, config_path=config_path)
    return AuthStatus(
        authenticated=True,
        masked_login_token=_mask_key(tokens.login_token),
        session_id=tokens.session_id,
        expires_at=tokens.expires_at,
        config_path=config_path,
    )
