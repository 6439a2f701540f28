"""Images namespace for the AgbCloud client."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Sequence

import httpx

from .._http import build_headers, build_query_params, handle_response, send, unwrap_envelope
from ..config import UPLOAD_TIMEOUT_SECONDS
from ..exceptions import APIError, AuthenticationError
from ..retry import UPLOAD_RETRY_POLICY, RetryPolicy

if TYPE_CHECKING:
    from ..auth.types import Tokens

logger = logging.getLogger(__name__)


class ImagesNamespace:
    """Namespace for custom image management."""

    def __init__(
        self,
        client: httpx.Client,
        base_url: str,
        get_tokens: Callable[[], Tokens | None],
        retry_policy: RetryPolicy,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._get_tokens = get_tokens
        self._retry_policy = retry_policy

    def _auth_params(self) -> dict[str, str]:
        tokens = self._get_tokens()
        if tokens is None or not tokens.login_token or not tokens.session_id:
            raise AuthenticationError("Not authenticated. Run 'agbcloud login' first.")
        return {"loginToken": tokens.login_token, "sessionId": tokens.session_id}

    def _get(self, path: str, params: dict[str, Any], action: str) -> Any:
        response = send(
            self._client,
            "GET",
            f"{self._base_url}{path}",
            self._retry_policy,
            params={**self._auth_params(), **params},
            headers=build_headers(),
        )
        return unwrap_envelope(handle_response(response), action)

    def _post(self, path: str, body: dict[str, Any], action: str) -> Any:
        response = send(
            self._client,
            "POST",
            f"{self._base_url}{path}",
            self._retry_policy,
            json={**self._auth_params(), **body},
            headers=build_headers(json_body=True),
        )
        return unwrap_envelope(handle_response(response), action)

    def get_upload_credential(self) -> dict[str, Any]:
        """Get a pre-signed upload URL and the task ID that tracks the build.

        Returns:
            Dictionary with ``ossUrl`` and ``taskId``.
        """
        return self._get("/api/image/getUploadCredential", {}, "get upload credentials") or {}

    def upload_dockerfile(
        self,
        dockerfile: str | Path,
        oss_url: str,
        *,
        retry_policy: RetryPolicy = UPLOAD_RETRY_POLICY,
    ) -> None:
        """PUT the Dockerfile bytes to the pre-signed URL."""
        content = Path(dockerfile).read_bytes()

        response = retry_policy.call(
            lambda: self._client.put(
                oss_url,
                content=content,
                headers={"Content-Type": "application/octet-stream"},
                timeout=UPLOAD_TIMEOUT_SECONDS,
            ),
            description="Dockerfile upload",
        )
        if not 200 <= response.status_code < 300:
            raise APIError(
                message=f"upload failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                response=response,
            )

    def create(self, image_name: str, task_id: str, source_image_id: str) -> Any:
        """Start building an image from an uploaded Dockerfile."""
        body = {"imageName": image_name, "taskId": task_id, "sourceImageId": source_image_id}
        return self._post("/api/image/create", body, "create image")

    def get_task(self, task_id: str) -> dict[str, Any]:
        """Get the status of an image build task.

        Returns:
            Dictionary with ``status``, ``taskMsg`` and ``imageId`` (may be None).
        """
        return self._get("/api/image/task", {"taskId": task_id}, "check task status") or {}

    def list(
        self,
        image_type: str = "User",
        *,
        page: int = 1,
        page_size: int = 10,
        image_ids: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        """List images.

        Args:
            image_type: ``User`` for custom images, ``System`` for base images.
            page: 1-based page number.
            page_size: Number of images per page.
            image_ids: Restrict results to these image IDs.

        Returns:
            Dictionary with ``imageList``, ``total``, ``page`` and ``pageSize``.
        """
        params = build_query_params(
            imageType=image_type,
            page=page,
            pageSize=page_size,
            imageIds=list(image_ids) if image_ids else None,
        )
        return self._get("/api/image/list", params, "list images") or {}

    def get(self, image_id: str, image_type: str = "User") -> dict[str, Any] | None:
        """Look up a single image by ID, or None if the server does not know it."""
        result = self.list(image_type, page=1, page_size=1, image_ids=[image_id])
        images = result.get("imageList") or []
        return images[0] if images else None

    def start(self, image_id: str, *, cpu: int = 0, memory: int = 0) -> Any:
        """Activate an image. CPU and memory are left to server defaults when 0."""
        body: dict[str, Any] = {"imageId": image_id}
        if cpu:
            body["cpu"] = cpu
        if memory:
            body["memory"] = memory
        return self._post("/api/image/start", body, "start image")

    def stop(self, image_id: str) -> Any:
        """Deactivate an image."""
        return self._post("/api/image/stop", {"imageId": image_id}, "deactivate image")
