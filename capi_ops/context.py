"""Per-request cancellation and deadline handling."""

import threading
import time

from capi_ops.exceptions import OperationCancelledError


class RequestContext:
    """Cancellation signal and optional deadline passed to every store call.

    Cancellation is cooperative: the store checks the context before each
    request and bounds the request with the remaining time. A write that was
    already sent is not rolled back.
    """

    def __init__(self, timeout: float | None = None):
        self.deadline = time.monotonic() + timeout if timeout else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Mark the request as cancelled."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    def check(self, action: str) -> None:
        """Raise if the request may no longer proceed.

        Raises:
            OperationCancelledError: If cancelled or past the deadline
        """
        if self.cancelled:
            raise OperationCancelledError(f"{action} cancelled by caller")
        if self.expired:
            raise OperationCancelledError(
                f"{action} exceeded its deadline",
                "Retry with a longer --timeout",
            )
