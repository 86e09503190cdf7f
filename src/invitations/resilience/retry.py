"""Tenacity retry policies.

Two policies are used by the engine:

- **conflict retries** re-run a whole read-validate-write cycle when the
  optimistic version check fails, so the loser of a race re-validates
  against the new state.
- **delivery retries** re-attempt handing a notification to the sink with
  exponential backoff and jitter before the failure is recorded.
"""

from __future__ import annotations

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from invitations.domain.errors import ConflictError

logger = structlog.get_logger()


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Retrying operation",
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
        exception=str(exception),
    )


def conflict_retrying(attempts: int = 3) -> Retrying:
    """Return a ``Retrying`` that repeats on :class:`ConflictError` only.

    Any other exception (illegal transition, authorization, validation)
    propagates immediately.  After the last attempt the ``ConflictError``
    itself is re-raised.

    Args:
        attempts: Maximum number of attempts, including the first.
    """
    return Retrying(
        retry=retry_if_exception_type(ConflictError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=0.01, max=0.2, jitter=0.05),
        before_sleep=_before_sleep_log,
        reraise=True,
    )


def delivery_retrying(attempts: int = 3, initial_wait: float = 0.5) -> Retrying:
    """Return a ``Retrying`` for notification delivery.

    Args:
        attempts: Maximum number of attempts, including the first.
        initial_wait: First backoff delay in seconds.
    """
    return Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=initial_wait, max=30, jitter=initial_wait),
        before_sleep=_before_sleep_log,
        reraise=True,
    )
