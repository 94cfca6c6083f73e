"""Single-slot, single-use handoff between the callback handler and the waiter.

The HTTP handler thread publishes at most one
:class:`~spotctl.models.CallbackResult`; the thread running the login
blocks in :meth:`Rendezvous.wait` until that result arrives, the deadline
passes, or the channel is closed. Only the first publish is accepted, so
the waiter always sees the result produced for its own attempt.
"""

from __future__ import annotations

import threading
import time
from typing import Optional

from spotctl.exceptions import AuthInterruptedError, AuthTimeoutError
from spotctl.models import CallbackResult


class Rendezvous:
    """A mailbox holding at most one :class:`~spotctl.models.CallbackResult`."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._result: Optional[CallbackResult] = None
        self._closed = False
        self._used = False

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def publish(self, result: CallbackResult, timeout: float = 0.0) -> bool:
        """Offer *result* to the waiter.

        Waits up to *timeout* seconds for the slot to become free, which in
        practice never happens because the channel is single use. A full or
        closed channel drops the result.

        Returns:
            ``True`` if the result was accepted.
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while not self._closed and self._used:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            if self._closed:
                return False
            self._result = result
            self._used = True
            self._cond.notify_all()
            return True

    def wait(self, timeout: float) -> CallbackResult:
        """Block until a result is published, the channel closes, or *timeout* elapses.

        Raises:
            AuthTimeoutError: No result within *timeout* seconds.
            AuthInterruptedError: The channel was closed while empty.
        """
        deadline = time.monotonic() + timeout
        with self._cond:
            while self._result is None:
                if self._closed:
                    raise AuthInterruptedError()
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise AuthTimeoutError(
                        f"no authorization callback received within {timeout:g} seconds"
                    )
                self._cond.wait(remaining)
            result, self._result = self._result, None
            return result

    def close(self) -> None:
        """Close the channel and wake every waiter. Safe to call repeatedly."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()
