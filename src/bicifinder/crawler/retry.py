"""
Bounded retry policy and upstream status taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.config import FetcherConfig

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ResponseKind(str, Enum):
    """How a strategy should react to an upstream status."""

    OK = "ok"
    WRONG_SHAPE = "wrong_shape"  # endpoint or method does not exist
    AUTH_REQUIRED = "auth_required"  # abandon the endpoint
    RETRYABLE = "retryable"  # transport failure, timeout, 408, 429, 5xx
    REJECTED = "rejected"  # any other client error


def classify_status(status: int) -> ResponseKind:
    if 200 <= status < 300:
        return ResponseKind.OK
    if status in (404, 405):
        return ResponseKind.WRONG_SHAPE
    if status in (401, 403):
        return ResponseKind.AUTH_REQUIRED
    if status == 0 or status in (408, 429) or status >= 500:
        return ResponseKind.RETRYABLE
    return ResponseKind.REJECTED


@dataclass(frozen=True)
class RetryPolicy:
    """Maximum attempts plus exponential backoff capped at ``max_delay``."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 5.0

    @classmethod
    def from_config(cls, config: FetcherConfig) -> RetryPolicy:
        return cls(max_attempts=config.max_attempts, base_delay=config.base_delay, max_delay=config.max_delay)

    def delay(self, attempt: int) -> float:
        """Wait after the given failed attempt (1-based): base, 2*base, 4*base ... capped."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    def _log_retry(self, description: str) -> Callable[[RetryCallState], None]:
        def before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Attempt failed",
                operation=description,
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                error=str(error),
                error_type=type(error).__name__,
            )

        return before_sleep

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        description: str = "operation",
    ) -> Optional[T]:
        """Run ``operation`` until it succeeds or attempts are exhausted.

        Returns ``None`` when every attempt raised one of ``retry_on``. Other
        exceptions propagate on the first occurrence.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(retry_on),
            before_sleep=self._log_retry(description),
        )
        try:
            return await retrying(operation)
        except RetryError as e:
            logger.error(
                "All attempts failed",
                operation=description,
                max_attempts=self.max_attempts,
                error=str(e.last_attempt.exception()),
            )
            return None
