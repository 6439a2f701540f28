"""Retry policy shared by REST calls and raw uploads."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, TypeVar

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import TRANSIENT_STATUS_CODES

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_retryable_error(exc: BaseException) -> bool:
    """Connection failures and timeouts are worth another attempt; malformed requests are not."""
    if isinstance(exc, (httpx.UnsupportedProtocol, httpx.LocalProtocolError, httpx.InvalidURL)):
        return False
    return isinstance(exc, httpx.TransportError)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff policy.

    ``max_attempts`` counts the first try, so the default makes one call plus
    three retries. Delays grow from ``initial_delay`` by ``backoff_factor`` and
    are capped at ``max_delay``.
    """

    max_attempts: int = 4
    initial_delay: float = 0.5
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    retryable_statuses: FrozenSet[int] = TRANSIENT_STATUS_CODES
    is_retryable_error: Callable[[BaseException], bool] = is_retryable_error
    sleep: Callable[[float], None] = field(default=time.sleep, compare=False, repr=False)

    def is_retryable_response(self, response: httpx.Response) -> bool:
        return response.status_code in self.retryable_statuses

    def call(self, fn: Callable[[], httpx.Response], *, description: str = "request") -> httpx.Response:
        """Run ``fn`` until it returns a non-retryable response or attempts run out.

        When attempts run out on a retryable status the last response is
        returned so the caller's normal error mapping applies; the last
        exception is re-raised unchanged.
        """

        def _before_sleep(state: RetryCallState) -> None:
            outcome = state.outcome
            if outcome is not None and outcome.failed:
                reason = repr(outcome.exception())
            elif outcome is not None:
                reason = f"HTTP {outcome.result().status_code}"
            else:
                reason = "unknown"
            delay = state.next_action.sleep if state.next_action else 0
            logger.info(
                "%s failed (attempt %d/%d, %s), retrying in %.1fs...",
                description,
                state.attempt_number,
                self.max_attempts,
                reason,
                delay,
            )

        def _give_up(state: RetryCallState) -> httpx.Response:
            logger.warning("%s failed after %d attempts", description, state.attempt_number)
            if state.outcome is None:
                raise RuntimeError(f"{description} gave up before any attempt completed")
            return state.outcome.result()

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff_factor,
                max=self.max_delay,
            ),
            retry=retry_if_exception(self.is_retryable_error) | retry_if_result(self.is_retryable_response),
            before_sleep=_before_sleep,
            retry_error_callback=_give_up,
            sleep=self.sleep,
        )
        return retrying(fn)


DEFAULT_RETRY_POLICY = RetryPolicy()
UPLOAD_RETRY_POLICY = RetryPolicy(initial_delay=1.0, max_delay=10.0)
