"""
Resilience Infrastructure.

Retry callbacks emitting structured resilience events. Used by the
client stream reconnect loop.

Usage:
    from den.backend.core.resilience import retry_logger

    async for attempt in AsyncRetrying(
        wait=wait_exponential(multiplier=1, min=1, max=30),
        before_sleep=retry_logger("note_stream"),
    ):
        with attempt:
            await connect()
"""

from collections.abc import Callable
from typing import Any

from den.backend.core.logging import get_logger

logger = get_logger(__name__)


def _retry_fields(retry_state: Any, dependency: str) -> dict[str, Any]:
    duration_ms = None
    if retry_state.outcome_timestamp and retry_state.start_time:
        duration_ms = round(
            (retry_state.outcome_timestamp - retry_state.start_time) * 1000
        )

    error = None
    if retry_state.outcome and retry_state.outcome.failed:
        error = str(retry_state.outcome.exception())

    next_sleep = None
    if retry_state.next_action is not None:
        next_sleep = retry_state.next_action.sleep

    return {
        "resilience_event": "retry_attempt",
        "dependency": dependency,
        "attempt": retry_state.attempt_number,
        "duration_ms": duration_ms,
        "next_sleep_seconds": next_sleep,
        "error": error,
    }


def retry_logger(dependency: str) -> Callable[[Any], None]:
    """Tenacity before_sleep callback that emits structured retry events.

    Args:
        dependency: Name of the thing being retried, e.g. "note_stream"

    Returns:
        Callback accepting a tenacity.RetryCallState
    """

    def _log(retry_state: Any) -> None:
        fields = _retry_fields(retry_state, dependency)
        logger.warning(
            f"Retrying {dependency} (attempt {retry_state.attempt_number})",
            extra=fields,
        )

    return _log
