"""Cancellation token threaded through cell build and teardown loops."""
import time

from context_recommender_service.errors import RequestCancelledError


class CancellationToken:
    """
    Explicit cancel flag with an optional deadline.

    ``check()`` is called before each cell step; once tripped, the
    remaining cells are abandoned.
    """

    def __init__(self, timeout: float | None = None):
        """
        Args:
            timeout: Seconds from now until the deadline (None for no deadline)
        """
        self._cancelled = False
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def check(self, step: str) -> None:
        """
        Raise if the request should stop before ``step``.

        Raises:
            RequestCancelledError: If cancelled or past the deadline
        """
        if self._cancelled:
            raise RequestCancelledError(f"request cancelled before {step}")
        if self._deadline is not None and time.monotonic() >= self._deadline:
            raise RequestCancelledError(f"request deadline exceeded before {step}")
