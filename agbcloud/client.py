"""Synchronous HTTP client for the AgbCloud API."""

from __future__ import annotations

from typing import Any

import httpx

from ._sync import ImagesNamespace, OAuthNamespace
from .auth.types import Tokens
from .config import DEFAULT_TIMEOUT_SECONDS, get_base_url, sanitize_base_url, should_verify_ssl
from .retry import DEFAULT_RETRY_POLICY, RetryPolicy


class AgbCloudClient:
    """Synchronous client for the AgbCloud API.

    Example:
        >>> from agbcloud import AgbCloudClient
        >>> from agbcloud.auth import load_tokens
        >>> with AgbCloudClient(tokens=load_tokens()) as client:
        ...     print(client.images.list())

    The client provides namespaced access to different API areas:
        - client.oauth: OAuth login URL, code exchange, refresh and logout
        - client.images: Custom image management (requires tokens)

    One client is constructed per CLI invocation and is not meant to be
    shared between threads.
    """

    def __init__(
        self,
        tokens: Tokens | None = None,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verify: bool | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        """Initialize the AgbCloud client.

        Args:
            tokens: Session tokens from ``agbcloud login``. Only needed for
                image operations.
            base_url: API base URL (default: AGB_CLI_ENDPOINT or https://agb.cloud).
            timeout: Request timeout in seconds (default: 30).
            verify: Verify TLS certificates (default: on unless
                AGB_CLI_SKIP_SSL_VERIFY=true).
            retry_policy: Backoff policy for transient HTTP failures.
        """
        self.tokens = tokens
        self._base_url = sanitize_base_url(base_url) if base_url else get_base_url()
        self._client = httpx.Client(
            timeout=timeout,
            verify=should_verify_ssl() if verify is None else verify,
        )

        self.oauth = OAuthNamespace(self._client, self._base_url, retry_policy)
        self.images = ImagesNamespace(self._client, self._base_url, lambda: self.tokens, retry_policy)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        """Release the underlying HTTP client resources."""
        self._client.close()

    def __enter__(self) -> AgbCloudClient:
        return self

    def __exit__(self, exc_type: type | None, exc: BaseException | None, traceback: Any) -> None:
        self.close()
