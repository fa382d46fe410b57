"""Retry with exponential backoff for remote operations.

Every collaborator that talks to a remote service (Jira, GitHub, OpenAI) wraps
its calls in ``RetryCoordinator.execute_with_retry``. Failures are classified
once into an :class:`ErrorClass`:

* ``RATE_LIMITED``: HTTP 429 or a rate-limit marker in the error message
* ``SERVER``: 5xx, or no status at all (connection reset, timeout)
* ``CLIENT``: any other status, never retried

Backoff is deterministic: ``base_delay * 2**attempt`` seconds, no jitter.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import TYPE_CHECKING, Final, TypeVar

from .exceptions import ExhaustedRetriesError, FatalRemoteError

if TYPE_CHECKING:
    from collections.abc import Callable

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES: Final[int] = 3
DEFAULT_BASE_DELAY: Final[float] = 1.0

_RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = ("rate limit", "too many requests")
HTTP_UNAUTHORIZED: Final[int] = 401
HTTP_TOO_MANY_REQUESTS: Final[int] = 429
_HTTP_SERVER_ERROR: Final[int] = 500


class ErrorClass(enum.Enum):
    """Retry classification of a failed remote call."""

    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    CLIENT = "client"

    @property
    def retryable(self) -> bool:
        return self is not ErrorClass.CLIENT


def error_status(error: BaseException) -> int | None:
    """Extract an HTTP-like status code from the various exception shapes we see.

    Handles our own ``RemoteError`` (``status``), PyGithub's ``GithubException``
    (``status``), the OpenAI SDK (``status_code``) and ``requests`` errors
    (``response.status_code``).
    """
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(error, "response", None)
    if response is not None:
        value = getattr(response, "status_code", None)
        if isinstance(value, int):
            return value
    return None


def classify_error(error: BaseException) -> ErrorClass:
    """Map any exception onto one of the three retry classes."""
    status = error_status(error)
    message = str(error).lower()

    if (
        getattr(error, "rate_limited", False) is True
        or status == HTTP_TOO_MANY_REQUESTS
        or any(marker in message for marker in _RATE_LIMIT_MARKERS)
    ):
        return ErrorClass.RATE_LIMITED
    if status is None or status >= _HTTP_SERVER_ERROR:
        return ErrorClass.SERVER
    return ErrorClass.CLIENT


class RetryCoordinator:
    """Runs a callable with bounded exponential backoff.

    Stateless between calls: there is no shared token bucket, the coordinator
    only shapes the timing of a single logical operation.
    """

    max_retries: int
    base_delay: float
    _sleep: Callable[[float], None]
    _logger: logging.Logger

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        *,
        sleep: Callable[[float], None] | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            max_retries: Extra attempts after the first one
            base_delay: Delay in seconds before the first retry
            sleep: Sleep function, replaceable in tests
            log: Logger for retry diagnostics (defaults to this module's logger)
        """
        if max_retries < 0:
            msg = f"max_retries must be >= 0, got {max_retries}"
            raise ValueError(msg)
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep or time.sleep
        self._logger = log or logger

    def delay_for(self, attempt: int) -> float:
        """Backoff delay before retrying after the 0-indexed ``attempt``."""
        return self.base_delay * (2**attempt)

    def execute_with_retry(self, operation: Callable[[], T], label: str = "operation") -> T:
        """Call ``operation`` until it succeeds or retrying is pointless.

        Args:
            operation: Zero-argument callable performing the remote call
            label: Human-readable description used in logs and errors

        Returns:
            Whatever ``operation`` returns

        Raises:
            FatalRemoteError: On a client-class failure (after exactly one call)
            ExhaustedRetriesError: After ``max_retries + 1`` transient failures
        """
        total_attempts = self.max_retries + 1

        for attempt in range(total_attempts):
            try:
                return operation()
            except Exception as e:
                error_class = classify_error(e)

                if not error_class.retryable:
                    self._logger.debug(f"{label} failed with a client error, not retrying: {e}")
                    raise FatalRemoteError(label, e) from e

                if attempt == self.max_retries:
                    raise ExhaustedRetriesError(label, e) from e

                delay = self.delay_for(attempt)
                self._logger.warning(
                    f"{label} failed (attempt {attempt + 1}/{total_attempts}, {error_class.value}): {e}"
                )
                self._logger.debug(f"Retrying in {delay:.1f}s...")
                self._sleep(delay)

        # range() above always returns or raises
        msg = "unreachable"
        raise AssertionError(msg)
