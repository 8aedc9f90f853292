"""Error taxonomy shared by the generation client and the storage layer."""

from typing import Optional


class CinegenError(Exception):
    """Base class for all cinegen errors."""


class UpstreamError(CinegenError):
    """A call to a generation endpoint failed.

    The classification is decided once, where the HTTP response (or SDK
    exception) is turned into this error. Retry logic only looks at
    ``status_code`` and ``rate_limited``.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.rate_limited = rate_limited or status_code == 429


class RateLimitError(UpstreamError):
    """The upstream throttled the request. Safe to retry after a delay."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = 429,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body, rate_limited=True)


class PermanentUpstreamError(UpstreamError):
    """Any upstream failure that is not a throttling signal."""


class MalformedResponseError(CinegenError):
    """The call succeeded but the response could not be interpreted."""


class GenerationTimeoutError(CinegenError):
    """A video task did not finish within the polling bound.

    Kept apart from ``UpstreamError``: the task may still complete upstream,
    so callers can offer "check back later" instead of "retry now".
    """

    def __init__(self, task_id: str, attempts: int) -> None:
        super().__init__(f"Video task {task_id} still running after {attempts} polls")
        self.task_id = task_id
        self.attempts = attempts


class StorageError(CinegenError):
    """Writing to or reaching the durable store failed."""


class PayloadTooLargeError(StorageError):
    """An artifact exceeds the per-artifact size ceiling."""


class InvalidPathError(StorageError):
    """A namespace, category or filename is not a single safe path segment."""


class OperationCancelledError(CinegenError):
    """A cooperative cancel flag was set while waiting on the upstream."""
