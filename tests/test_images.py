"""Tests for the create, activate and deactivate workflows."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from agbcloud.exceptions import APIError, ImageNotFoundError, RequestRejectedError
from agbcloud.images import (
    activate_image,
    create_image,
    deactivate_image,
    format_image_status,
    validate_cpu_memory,
)
from agbcloud.polling import PollResult, PollSettings


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def settings():
    clock = FakeClock()
    return PollSettings(interval=5.0, timeout=60.0, clock=clock, sleep=clock.sleep)


@pytest.fixture
def api():
    """Stand-in for AgbCloudClient with a mocked ``images`` namespace."""
    client = MagicMock()
    client.images.get_upload_credential.return_value = {"ossUrl": "https://oss.test/put", "taskId": "task-1"}
    return client


@pytest.fixture
def dockerfile(tmp_path):
    path = tmp_path / "Dockerfile"
    path.write_text("FROM python:3.12-slim\n")
    return path


def image(status: str, image_id: str = "img-1") -> dict:
    return {"imageId": image_id, "status": status}


# ---------------------------------------------------------------------------
# Validation and display
# ---------------------------------------------------------------------------


class TestValidateCpuMemory:
    @pytest.mark.parametrize("cpu,memory", [(0, 0), (2, 4), (4, 8), (8, 16)])
    def test_supported(self, cpu, memory):
        validate_cpu_memory(cpu, memory)

    @pytest.mark.parametrize("cpu,memory", [(2, 0), (0, 8)])
    def test_both_required(self, cpu, memory):
        with pytest.raises(ValueError, match="specified together"):
            validate_cpu_memory(cpu, memory)

    def test_unsupported_combination(self):
        with pytest.raises(ValueError, match="4c4g"):
            validate_cpu_memory(4, 4)


class TestFormatImageStatus:
    def test_known(self):
        assert format_image_status("RESOURCE_PUBLISHED") == "Activated"
        assert format_image_status("IMAGE_AVAILABLE") == "Available"
        assert format_image_status("RESOURCE_CEASED") == "Ceased Billing"

    def test_unknown_passes_through(self):
        assert format_image_status("SOMETHING_ELSE") == "SOMETHING_ELSE"


# ---------------------------------------------------------------------------
# create_image
# ---------------------------------------------------------------------------


class TestCreateImage:
    def test_happy_path(self, api, dockerfile, settings):
        api.images.get_task.side_effect = [
            {"status": "Inline"},
            {"status": "Preparing"},
            {"status": "Finished", "imageId": "img-new", "taskMsg": ""},
        ]

        result = create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        assert result.succeeded
        assert result.image_id == "img-new"
        assert result.task_id == "task-1"
        api.images.upload_dockerfile.assert_called_once_with(dockerfile.resolve(), "https://oss.test/put")
        api.images.create.assert_called_once_with("my-image", "task-1", "base-1")
        assert api.images.get_task.call_count == 3

    def test_build_failure_carries_task_message(self, api, dockerfile, settings):
        api.images.get_task.return_value = {"status": "Failed", "taskMsg": "step 3 failed", "imageId": None}

        result = create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        assert result.outcome.result is PollResult.FAILURE
        assert result.message == "step 3 failed"
        assert result.image_id is None

    def test_timeout(self, api, dockerfile, settings):
        api.images.get_task.return_value = {"status": "Preparing"}

        result = create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        assert result.timed_out
        assert result.status == "Preparing"
        assert api.images.get_task.call_count == 12

    def test_missing_dockerfile_makes_no_calls(self, api, tmp_path, settings):
        with pytest.raises(FileNotFoundError, match="dockerfile not found"):
            create_image(api, "my-image", tmp_path / "nope", "base-1", settings=settings)

        api.images.get_upload_credential.assert_not_called()

    def test_upload_failure_aborts_before_create(self, api, dockerfile, settings):
        api.images.upload_dockerfile.side_effect = APIError("upload failed", 403)

        with pytest.raises(APIError):
            create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        api.images.create.assert_not_called()

    def test_transient_task_errors_keep_polling(self, api, dockerfile, settings):
        api.images.get_task.side_effect = [
            RequestRejectedError("Failed to check task status", code="Throttled"),
            APIError("unavailable", 503),
            httpx.ReadTimeout("slow"),
            {"status": "Finished", "imageId": "img-new"},
        ]

        result = create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        assert result.succeeded
        assert api.images.get_task.call_count == 4

    def test_permanent_task_error_aborts(self, api, dockerfile, settings):
        api.images.get_task.side_effect = APIError("forbidden", 403)

        with pytest.raises(APIError):
            create_image(api, "my-image", dockerfile, "base-1", settings=settings)

        assert api.images.get_task.call_count == 1


# ---------------------------------------------------------------------------
# activate_image
# ---------------------------------------------------------------------------


class TestActivateImage:
    def test_invalid_resources_fail_before_any_call(self, api, settings):
        with pytest.raises(ValueError):
            activate_image(api, "img-1", cpu=2, memory=8, settings=settings)

        api.images.get.assert_not_called()
        api.images.start.assert_not_called()

    def test_unknown_image(self, api, settings):
        api.images.get.return_value = None

        with pytest.raises(ImageNotFoundError, match="img-1"):
            activate_image(api, "img-1", settings=settings)

        api.images.start.assert_not_called()

    def test_already_published_short_circuits(self, api, settings):
        api.images.get.return_value = image("RESOURCE_PUBLISHED")

        result = activate_image(api, "img-1", settings=settings)

        assert result.succeeded
        assert not result.mutated
        assert result.initial_status == "RESOURCE_PUBLISHED"
        api.images.start.assert_not_called()
        assert api.images.get.call_count == 1

    def test_already_deploying_joins_without_start(self, api, settings):
        api.images.get.side_effect = [
            image("RESOURCE_DEPLOYING"),
            image("RESOURCE_DEPLOYING"),
            image("RESOURCE_PUBLISHED"),
        ]

        result = activate_image(api, "img-1", settings=settings)

        assert result.succeeded
        assert not result.mutated
        api.images.start.assert_not_called()

    def test_available_image_is_started(self, api, settings):
        api.images.get.side_effect = [
            image("IMAGE_AVAILABLE"),
            image("RESOURCE_DEPLOYING"),
            image("RESOURCE_PUBLISHED"),
        ]

        result = activate_image(api, "img-1", cpu=4, memory=8, settings=settings)

        assert result.succeeded
        assert result.mutated
        assert result.initial_status == "IMAGE_AVAILABLE"
        api.images.start.assert_called_once_with("img-1", cpu=4, memory=8)

    def test_activation_failure(self, api, settings):
        api.images.get.side_effect = [image("IMAGE_AVAILABLE"), image("RESOURCE_FAILED")]

        result = activate_image(api, "img-1", settings=settings)

        assert result.outcome.failed
        assert result.status == "RESOURCE_FAILED"

    def test_image_vanishing_during_poll_is_transient(self, api, settings):
        api.images.get.side_effect = [image("IMAGE_AVAILABLE"), None, image("RESOURCE_PUBLISHED")]

        result = activate_image(api, "img-1", settings=settings)

        assert result.succeeded

    def test_not_found_while_polling_aborts(self, api, settings):
        api.images.get.side_effect = [image("IMAGE_AVAILABLE"), APIError("not found", 404)]

        with pytest.raises(APIError):
            activate_image(api, "img-1", settings=settings)


# ---------------------------------------------------------------------------
# deactivate_image
# ---------------------------------------------------------------------------


class TestDeactivateImage:
    def test_stops_then_waits_for_available(self, api, settings):
        api.images.get.side_effect = [
            image("RESOURCE_PUBLISHED"),
            image("RESOURCE_DELETING"),
            image("IMAGE_AVAILABLE"),
        ]

        result = deactivate_image(api, "img-1", settings=settings)

        assert result.succeeded
        api.images.stop.assert_called_once_with("img-1")
        assert api.images.get.call_count == 3

    def test_failure(self, api, settings):
        api.images.get.return_value = image("RESOURCE_FAILED")

        result = deactivate_image(api, "img-1", settings=settings)

        assert result.outcome.failed

    def test_stop_rejected_does_not_poll(self, api, settings):
        api.images.stop.side_effect = RequestRejectedError("Failed to deactivate image", code="InvalidStatus")

        with pytest.raises(RequestRejectedError):
            deactivate_image(api, "img-1", settings=settings)

        api.images.get.assert_not_called()
