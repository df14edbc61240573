"""
Per-call deadline and cancellation token.

A `Context` is created by the caller (typically one per HTTP request) and
passed down to storage calls as `ctx=`. Backends call `check()` before doing
any work; the relational backend additionally turns `remaining()` into a
server-side statement timeout so an in-flight query is aborted.

Example
-------
>>> ctx = Context(timeout=1.0)
>>> storage.find_original_url("abcdef", ctx=ctx)
"""

import threading
import time
from typing import Optional

from .errors import DeadlineExceededError


class Context:
    """Deadline + cancel flag shared between a caller and the calls it makes."""

    def __init__(self, timeout: Optional[float] = None):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline (never negative), or None if unbounded."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, op: Optional[str] = None) -> None:
        """Raise DeadlineExceededError if the context is cancelled or expired."""
        if self.cancelled:
            raise DeadlineExceededError("context cancelled", op=op)
        if self.expired:
            raise DeadlineExceededError("deadline exceeded", op=op)


def check(ctx: Optional[Context], op: Optional[str] = None) -> None:
    """`ctx.check(op)` tolerant of a missing context."""
    if ctx is not None:
        ctx.check(op)
