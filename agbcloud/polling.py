"""Generic long-poll loop shared by image creation, activation and deactivation."""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, FrozenSet, Generic, Optional, TypeVar

from .config import POLL_INTERVAL_SECONDS, POLL_TIMEOUT_SECONDS
from .exceptions import TransientError

logger = logging.getLogger(__name__)

S = TypeVar("S")


class StatusClass(enum.Enum):
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILURE = "failure"
    UNKNOWN = "unknown"


class PollResult(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class StatusVocabulary:
    """Maps remote status strings onto in-progress, success and failure.

    Any status not listed classifies as UNKNOWN. The poll loop keeps going
    on those, so a status the server adds later does not abort a running
    operation.
    """

    name: str
    in_progress: FrozenSet[str]
    success: FrozenSet[str]
    failure: FrozenSet[str]

    def is_known(self, status: str) -> bool:
        return status in self.in_progress or status in self.success or status in self.failure

    def classify(self, status: str) -> StatusClass:
        if status in self.success:
            return StatusClass.SUCCESS
        if status in self.failure:
            return StatusClass.FAILURE
        if status in self.in_progress:
            return StatusClass.IN_PROGRESS
        return StatusClass.UNKNOWN


@dataclass(frozen=True)
class PollSettings:
    """Timing for a poll loop. ``clock`` and ``sleep`` are swapped out in tests."""

    interval: float = POLL_INTERVAL_SECONDS
    timeout: float = POLL_TIMEOUT_SECONDS
    clock: Callable[[], float] = field(default=time.monotonic, compare=False, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)


@dataclass(frozen=True)
class StatusSnapshot(Generic[S]):
    """One observation of the poll target: its status string plus the raw payload."""

    status: str
    payload: S


@dataclass
class PollOutcome(Generic[S]):
    """Terminal result of :func:`poll_until_terminal`."""

    result: PollResult
    status: Optional[str] = None
    payload: Optional[S] = None
    attempts: int = 0
    elapsed: float = 0.0

    @property
    def succeeded(self) -> bool:
        return self.result is PollResult.SUCCESS

    @property
    def failed(self) -> bool:
        return self.result is PollResult.FAILURE

    @property
    def timed_out(self) -> bool:
        return self.result is PollResult.TIMED_OUT


def poll_until_terminal(
    fetch_status: Callable[[], StatusSnapshot[S]],
    classify: Callable[[str], StatusClass],
    *,
    interval: float = POLL_INTERVAL_SECONDS,
    timeout: float = POLL_TIMEOUT_SECONDS,
    on_status: Callable[[StatusSnapshot[S]], Any] | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    description: str = "operation",
) -> PollOutcome[S]:
    """Call ``fetch_status`` every ``interval`` seconds until a terminal status or ``timeout``.

    The first check happens one interval after the call. ``fetch_status``
    raises :class:`~agbcloud.exceptions.TransientError` for failures that
    should not stop the loop; those are logged and the next tick proceeds.
    Any other exception propagates to the caller.

    Args:
        fetch_status: Returns the current status of the poll target.
        classify: Maps a status string to a :class:`StatusClass`.
        interval: Seconds between checks.
        timeout: Overall deadline in seconds.
        on_status: Called with every successfully fetched snapshot, e.g. for
            progress output.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.
        description: Names the operation in log messages.

    Statuses that ``classify`` reports as UNKNOWN keep the loop going. Each
    distinct one is logged once per call.
    """
    start = clock()
    deadline = start + timeout
    attempts = 0
    last_status: str | None = None
    reported_unknown: set[str] = set()

    while True:
        remaining = deadline - clock()
        if remaining < interval:
            if remaining > 0:
                sleep(remaining)
            break
        sleep(interval)
        attempts += 1

        try:
            snapshot = fetch_status()
        except TransientError as e:
            logger.warning("Status check %d failed, will retry: %s", attempts, e)
            continue

        last_status = snapshot.status
        if on_status is not None:
            on_status(snapshot)

        status_class = classify(snapshot.status)
        if status_class is StatusClass.UNKNOWN and snapshot.status not in reported_unknown:
            reported_unknown.add(snapshot.status)
            logger.warning("Unrecognized %s status %r, continuing to poll", description, snapshot.status)
        logger.debug("Poll %d: status=%s (%s)", attempts, snapshot.status, status_class.value)
        if status_class is StatusClass.SUCCESS:
            return PollOutcome(PollResult.SUCCESS, snapshot.status, snapshot.payload, attempts, clock() - start)
        if status_class is StatusClass.FAILURE:
            return PollOutcome(PollResult.FAILURE, snapshot.status, snapshot.payload, attempts, clock() - start)

    logger.warning("Polling timed out after %.0fs (last status: %s)", clock() - start, last_status)
    return PollOutcome(PollResult.TIMED_OUT, last_status, None, attempts, clock() - start)
