"""Exponential backoff for throttled upstream calls."""

import logging
import time
from typing import Callable, Optional, TypeVar

from ..errors import UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def is_rate_limited(error: BaseException) -> bool:
    """Return True if ``error`` carries a throttling signal."""
    return isinstance(error, UpstreamError) and (
        error.rate_limited or error.status_code == 429
    )


class RetryGovernor:
    """Retries an operation only while the upstream reports throttling.

    Every other failure propagates on the first occurrence.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        """Initialize the governor.

        Args:
            max_attempts: Total attempts, including the first one.
            base_delay: Delay before the second attempt, in seconds. Doubles
                for each later attempt.
            sleep: Sleep function, ``time.sleep`` by default.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep or time.sleep

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given 0-based attempt."""
        return self.base_delay * (2**attempt)

    def execute(self, operation: Callable[[], T], label: str = "request") -> T:
        """Run ``operation`` with backoff on rate limiting.

        Args:
            operation: Zero-argument callable to run.
            label: Name used in log messages.

        Returns:
            Whatever ``operation`` returns.

        Raises:
            Exception: The operation's error if it is not a throttling
                signal, or the last throttling error once attempts run out.
        """
        for attempt in range(self.max_attempts):
            try:
                return operation()
            except UpstreamError as e:
                if not is_rate_limited(e) or attempt == self.max_attempts - 1:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{label} rate limited (attempt {attempt + 1}/{self.max_attempts}). "
                    f"Retrying in {delay:.1f}s..."
                )
                self._sleep(delay)

        raise RuntimeError("unreachable")
