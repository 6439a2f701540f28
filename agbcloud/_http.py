"""Shared HTTP request utilities for the AgbCloud client."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from .exceptions import APIError, AuthenticationError, RequestRejectedError
from .retry import RetryPolicy

logger = logging.getLogger(__name__)


def build_headers(json_body: bool = False) -> dict[str, str]:
    """Build default request headers."""
    headers = {"Accept": "application/json"}
    if json_body:
        headers["Content-Type"] = "application/json"
    return headers


def build_query_params(**kwargs: Any) -> dict[str, Any]:
    """Build query parameters, filtering out None values."""
    return {k: v for k, v in kwargs.items() if v is not None}


def send(
    client: httpx.Client,
    method: str,
    url: str,
    policy: RetryPolicy,
    **kwargs: Any,
) -> httpx.Response:
    """Issue a request through the retry policy, logging both directions at debug level."""

    def _attempt() -> httpx.Response:
        logger.debug("HTTP %s %s params=%s", method, url, kwargs.get("params"))
        response = client.request(method, url, **kwargs)
        logger.debug("HTTP %s %s -> %s %s", method, url, response.status_code, response.text)
        return response

    return policy.call(_attempt, description=f"{method} {url}")


def handle_response(response: httpx.Response) -> dict[str, Any]:
    """Process HTTP response, raising appropriate errors for failures."""
    if response.status_code == 401:
        raise AuthenticationError("Invalid or expired tokens. Run 'agbcloud login' to reauthenticate.")

    if response.status_code >= 400:
        raise APIError(
            message=response.text or "AgbCloud API call failed",
            status_code=response.status_code,
            response=response,
        )

    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError as e:
        raise APIError(
            message=f"invalid JSON in response: {e}",
            status_code=response.status_code,
            response=response,
        ) from e
    if not isinstance(payload, dict):
        raise APIError(
            message=f"unexpected response body: expected an object, got {type(payload).__name__}",
            status_code=response.status_code,
            response=response,
        )
    return payload


def unwrap_envelope(payload: dict[str, Any], action: str) -> Any:
    """Return the ``data`` field of a ``{code, requestId, success, data}`` envelope.

    Raises RequestRejectedError when the server reports ``success: false``.
    """
    if not payload.get("success"):
        raise RequestRejectedError(
            f"Failed to {action}",
            code=payload.get("code"),
            request_id=payload.get("requestId"),
        )
    return payload.get("data")
