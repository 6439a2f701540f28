"""OAuth and session namespace for the AgbCloud client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .._http import build_headers, build_query_params, handle_response, send, unwrap_envelope
from ..auth.constants import LOGIN_CLIENT, OAUTH_PROVIDER

if TYPE_CHECKING:
    import httpx

    from ..retry import RetryPolicy


class OAuthNamespace:
    """Namespace for OAuth login, token refresh and logout.

    None of these endpoints take an Authorization header; tokens travel as
    query parameters.
    """

    def __init__(self, client: httpx.Client, base_url: str, retry_policy: RetryPolicy) -> None:
        self._client = client
        self._base_url = base_url
        self._retry_policy = retry_policy

    def _get(self, path: str, params: dict[str, Any], action: str) -> dict[str, Any]:
        response = send(
            self._client,
            "GET",
            f"{self._base_url}{path}",
            self._retry_policy,
            params=params,
            headers=build_headers(),
        )
        return unwrap_envelope(handle_response(response), action) or {}

    def get_login_provider_url(
        self,
        from_url_path: str,
        *,
        localhost_port: str | None = None,
        login_client: str = LOGIN_CLIENT,
        oauth_provider: str = OAUTH_PROVIDER,
    ) -> dict[str, Any]:
        """Request an OAuth invocation URL.

        Args:
            from_url_path: Redirect origin, e.g. ``http://localhost:3000``.
            localhost_port: Callback port to embed in the redirect URI. Left
                out on the first request; only sent once an alternative port
                has been chosen.

        Returns:
            Dictionary with ``invokeUrl`` and ``alternativePorts`` (CSV).
        """
        params = build_query_params(
            fromUrlPath=from_url_path or None,
            loginClient=login_client,
            oauthProvider=oauth_provider,
            localhostPort=localhost_port,
        )
        return self._get("/api/oauth/login_provider", params, "get OAuth URL")

    def login_translate(
        self,
        auth_code: str,
        *,
        localhost_port: str | None = None,
        login_client: str = LOGIN_CLIENT,
        oauth_provider: str = OAUTH_PROVIDER,
    ) -> dict[str, Any]:
        """Exchange an authorization code for session tokens.

        The port must be the one the callback listener ran on; the server
        uses it to validate where the code came from.

        Returns:
            Dictionary with ``loginToken``, ``sessionId``, ``keepAliveToken``
            and ``expiresAt``.
        """
        if not auth_code:
            raise ValueError("auth_code is required")
        params = build_query_params(
            loginClient=login_client,
            oauthProvider=oauth_provider,
            authCode=auth_code,
            localhostPort=localhost_port,
        )
        return self._get("/api/oauth/login_translate", params, "exchange code for token")

    def refresh(self, keep_alive_token: str, session_id: str) -> dict[str, Any]:
        """Mint fresh tokens from the keep-alive token."""
        if not keep_alive_token or not session_id:
            raise ValueError("keep_alive_token and session_id are required")
        params = {"keepAliveToken": keep_alive_token, "sessionId": session_id}
        return self._get("/api/biz_login/refresh", params, "refresh token")

    def logout(self, login_token: str, session_id: str) -> None:
        """Invalidate the server-side session."""
        if not login_token or not session_id:
            raise ValueError("login_token and session_id are required")
        params = {"loginToken": login_token, "sessionId": session_id}
        self._get("/api/biz_login/logout", params, "log out")
