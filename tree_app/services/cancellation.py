"""
Cooperative cancellation for long traversals
"""
import threading
import time

from tree_app.services.exceptions import OperationCancelledError


class CancellationToken:
    """Cancellation signal checked between traversal layers.

    A token is cancelled explicitly via ``cancel()`` or implicitly once its
    optional deadline (seconds from creation) has passed.
    """

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self, operation: str = "operation"):
        if self.is_cancelled:
            raise OperationCancelledError(f"{operation} was cancelled")


def check_cancelled(token: CancellationToken | None, operation: str):
    """Raise OperationCancelledError if a token was given and is cancelled"""
    if token is not None:
        token.raise_if_cancelled(operation)
