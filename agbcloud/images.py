"""Long-running custom image workflows: create, activate and deactivate.

Each workflow issues its mutating call once and then hands a status fetcher
plus a status vocabulary to :func:`agbcloud.polling.poll_until_terminal`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, Optional

import httpx

from .exceptions import APIError, ImageNotFoundError, RequestRejectedError, TransientError
from .polling import (
    PollOutcome,
    PollResult,
    PollSettings,
    StatusSnapshot,
    StatusVocabulary,
    poll_until_terminal,
)

if TYPE_CHECKING:
    from .client import AgbCloudClient

logger = logging.getLogger(__name__)

# Task statuses
TASK_INLINE = "Inline"
TASK_PREPARING = "Preparing"
TASK_FINISHED = "Finished"
TASK_FAILED = "Failed"

# Image statuses
IMAGE_CREATING = "IMAGE_CREATING"
IMAGE_CREATE_FAILED = "IMAGE_CREATE_FAILED"
IMAGE_AVAILABLE = "IMAGE_AVAILABLE"
RESOURCE_DEPLOYING = "RESOURCE_DEPLOYING"
RESOURCE_PUBLISHED = "RESOURCE_PUBLISHED"
RESOURCE_DELETING = "RESOURCE_DELETING"
RESOURCE_FAILED = "RESOURCE_FAILED"
RESOURCE_CEASED = "RESOURCE_CEASED"

CREATE_VOCABULARY = StatusVocabulary(
    name="image creation",
    in_progress=frozenset({TASK_INLINE, TASK_PREPARING}),
    success=frozenset({TASK_FINISHED}),
    failure=frozenset({TASK_FAILED}),
)

ACTIVATE_VOCABULARY = StatusVocabulary(
    name="image activation",
    in_progress=frozenset({RESOURCE_DEPLOYING}),
    success=frozenset({RESOURCE_PUBLISHED}),
    failure=frozenset({RESOURCE_FAILED, RESOURCE_CEASED}),
)

# RESOURCE_PUBLISHED stays in progress: the stop request may not have been
# picked up yet.
DEACTIVATE_VOCABULARY = StatusVocabulary(
    name="image deactivation",
    in_progress=frozenset({RESOURCE_DELETING, RESOURCE_PUBLISHED}),
    success=frozenset({IMAGE_AVAILABLE}),
    failure=frozenset({RESOURCE_FAILED}),
)

STATUS_DISPLAY_NAMES = {
    IMAGE_CREATING: "Creating",
    IMAGE_CREATE_FAILED: "Create Failed",
    IMAGE_AVAILABLE: "Available",
    RESOURCE_DEPLOYING: "Activating",
    RESOURCE_PUBLISHED: "Activated",
    RESOURCE_DELETING: "Deactivating",
    RESOURCE_FAILED: "Activate Failed",
    RESOURCE_CEASED: "Ceased Billing",
}

# cpu cores -> memory GB
SUPPORTED_RESOURCE_COMBINATIONS = {2: 4, 4: 8, 8: 16}


def format_image_status(status: str) -> str:
    """Human-readable image status; unknown statuses pass through unchanged."""
    return STATUS_DISPLAY_NAMES.get(status, status)


def validate_cpu_memory(cpu: int, memory: int) -> None:
    """Check a CPU/memory pair against the supported sizes.

    Both zero means "server default".

    Raises:
        ValueError: only one value given, or an unsupported combination.
    """
    if cpu == 0 and memory == 0:
        return
    if cpu == 0 or memory == 0:
        raise ValueError("Both CPU and memory must be specified together")
    if SUPPORTED_RESOURCE_COMBINATIONS.get(cpu) != memory:
        raise ValueError(f"Invalid CPU/Memory combination: {cpu}c{memory}g")


@dataclass
class ImageOperationResult:
    """Result of a create, activate or deactivate workflow.

    ``outcome`` carries the final status. For create, ``image_id`` is only
    known once the build task finishes.
    """

    outcome: PollOutcome[Dict[str, Any]]
    image_id: Optional[str] = None
    task_id: Optional[str] = None
    initial_status: Optional[str] = None
    mutated: bool = True

    @property
    def succeeded(self) -> bool:
        return self.outcome.succeeded

    @property
    def timed_out(self) -> bool:
        return self.outcome.timed_out

    @property
    def status(self) -> Optional[str]:
        return self.outcome.status

    @property
    def message(self) -> Optional[str]:
        payload = self.outcome.payload or {}
        return payload.get("taskMsg") or None


@contextmanager
def _transient_failures(description: str) -> Iterator[None]:
    """Turn failures that should not end a poll loop into TransientError.

    Non-transient HTTP errors (403, 404, 401...) propagate unchanged.
    """
    try:
        yield
    except RequestRejectedError as e:
        raise TransientError(f"{description}: {e}") from e
    except APIError as e:
        if not e.is_transient:
            raise
        raise TransientError(f"{description}: {e}") from e
    except httpx.TransportError as e:
        raise TransientError(f"{description}: {e!r}") from e


def task_status_fetcher(client: AgbCloudClient, task_id: str) -> Callable[[], StatusSnapshot[Dict[str, Any]]]:
    def fetch() -> StatusSnapshot[Dict[str, Any]]:
        with _transient_failures(f"Failed to check task {task_id}"):
            data = client.images.get_task(task_id)
        return StatusSnapshot(str(data.get("status") or ""), data)

    return fetch


def image_status_fetcher(client: AgbCloudClient, image_id: str) -> Callable[[], StatusSnapshot[Dict[str, Any]]]:
    def fetch() -> StatusSnapshot[Dict[str, Any]]:
        with _transient_failures(f"Failed to check image {image_id}"):
            image = client.images.get(image_id)
        if image is None:
            raise TransientError(f"Image not found: {image_id}")
        return StatusSnapshot(str(image.get("status") or ""), image)

    return fetch


def wait_for_task(
    client: AgbCloudClient,
    task_id: str,
    *,
    settings: PollSettings = PollSettings(),
    on_status: Callable[[StatusSnapshot[Dict[str, Any]]], Any] | None = None,
) -> PollOutcome[Dict[str, Any]]:
    """Poll an image build task until Finished, Failed or the timeout."""
    return poll_until_terminal(
        task_status_fetcher(client, task_id),
        CREATE_VOCABULARY.classify,
        interval=settings.interval,
        timeout=settings.timeout,
        on_status=on_status,
        clock=settings.clock,
        sleep=settings.sleep,
        description=CREATE_VOCABULARY.name,
    )


def wait_for_image(
    client: AgbCloudClient,
    image_id: str,
    vocabulary: StatusVocabulary,
    *,
    settings: PollSettings = PollSettings(),
    on_status: Callable[[StatusSnapshot[Dict[str, Any]]], Any] | None = None,
) -> PollOutcome[Dict[str, Any]]:
    """Poll an image's status against ``vocabulary``."""
    return poll_until_terminal(
        image_status_fetcher(client, image_id),
        vocabulary.classify,
        interval=settings.interval,
        timeout=settings.timeout,
        on_status=on_status,
        clock=settings.clock,
        sleep=settings.sleep,
        description=vocabulary.name,
    )


def create_image(
    client: AgbCloudClient,
    image_name: str,
    dockerfile: str | Path,
    source_image_id: str,
    *,
    settings: PollSettings = PollSettings(),
    on_status: Callable[[StatusSnapshot[Dict[str, Any]]], Any] | None = None,
) -> ImageOperationResult:
    """Upload a Dockerfile, start the image build and wait for it.

    Raises:
        FileNotFoundError: ``dockerfile`` does not exist.
        AgbCloudError: any step before polling failed.
    """
    path = Path(dockerfile).expanduser().resolve()
    if not path.is_file():
        raise FileNotFoundError(f"dockerfile not found: {path}")

    credential = client.images.get_upload_credential()
    oss_url = credential.get("ossUrl") or ""
    task_id = credential.get("taskId") or ""
    logger.info("Uploading %s (task %s)", path, task_id)

    client.images.upload_dockerfile(path, oss_url)
    client.images.create(image_name, task_id, source_image_id)
    logger.info("Image build for %r started, task %s", image_name, task_id)

    outcome = wait_for_task(client, task_id, settings=settings, on_status=on_status)
    image_id = (outcome.payload or {}).get("imageId") if outcome.succeeded else None
    return ImageOperationResult(outcome=outcome, image_id=image_id, task_id=task_id)


def activate_image(
    client: AgbCloudClient,
    image_id: str,
    *,
    cpu: int = 0,
    memory: int = 0,
    settings: PollSettings = PollSettings(),
    on_status: Callable[[StatusSnapshot[Dict[str, Any]]], Any] | None = None,
) -> ImageOperationResult:
    """Activate an image and wait until it is published.

    An image that is already published returns at once, and one that is
    already deploying is polled without a second start request.

    Raises:
        ValueError: unsupported CPU/memory combination.
        ImageNotFoundError: the server does not know ``image_id``.
    """
    validate_cpu_memory(cpu, memory)

    image = client.images.get(image_id)
    if image is None:
        raise ImageNotFoundError(image_id)
    current = str(image.get("status") or "")
    logger.info("Image %s is currently %s", image_id, format_image_status(current))

    if current == RESOURCE_PUBLISHED:
        outcome: PollOutcome[Dict[str, Any]] = PollOutcome(PollResult.SUCCESS, current, image)
        return ImageOperationResult(outcome=outcome, image_id=image_id, initial_status=current, mutated=False)

    mutated = False
    if current != RESOURCE_DEPLOYING:
        client.images.start(image_id, cpu=cpu, memory=memory)
        mutated = True

    outcome = wait_for_image(client, image_id, ACTIVATE_VOCABULARY, settings=settings, on_status=on_status)
    return ImageOperationResult(outcome=outcome, image_id=image_id, initial_status=current, mutated=mutated)


def deactivate_image(
    client: AgbCloudClient,
    image_id: str,
    *,
    settings: PollSettings = PollSettings(),
    on_status: Callable[[StatusSnapshot[Dict[str, Any]]], Any] | None = None,
) -> ImageOperationResult:
    """Deactivate an image and wait until it is available again."""
    client.images.stop(image_id)
    outcome = wait_for_image(client, image_id, DEACTIVATE_VOCABULARY, settings=settings, on_status=on_status)
    return ImageOperationResult(outcome=outcome, image_id=image_id)
