"""Handle for one blocking upstream call that can be raced against a deadline.

The call runs on its own daemon thread. Python cannot interrupt a blocking
socket read, so ``abandon()`` does not stop the thread: it marks the handle
so that a result arriving afterwards is logged and dropped. The thread itself
lives until the transport timeout of the wrapped call fires.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class AbandonableCall:
    def __init__(self, fn: Callable[..., Any], *args: Any, name: str = "upstream-call", **kwargs: Any):
        self._fn = fn
        self._args = args
        self._kwargs = kwargs
        self._name = name
        self._future: "Future[Any]" = Future()
        self._abandoned = threading.Event()
        self._started_at: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "AbandonableCall":
        if self._thread is not None:
            raise RuntimeError(f"{self._name} already started")
        self._future.set_running_or_notify_cancel()
        self._started_at = time.monotonic()
        self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            value = self._fn(*self._args, **self._kwargs)
        except BaseException as exc:
            self._future.set_exception(exc)
        else:
            self._future.set_result(value)
        if self._abandoned.is_set():
            log.info(
                "%s: late result discarded after %.2fs (caller already timed out)",
                self._name,
                self.elapsed(),
            )

    def done(self) -> bool:
        """Non-blocking poll."""
        return self._future.done()

    @property
    def abandoned(self) -> bool:
        return self._abandoned.is_set()

    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return time.monotonic() - self._started_at

    def result(self, timeout: Optional[float] = None) -> Any:
        """Wait up to ``timeout`` seconds.

        Raises ``concurrent.futures.TimeoutError`` if the call is still pending,
        or re-raises whatever the wrapped function raised.
        """
        if self._thread is None:
            raise RuntimeError(f"{self._name} was never started")
        if self.abandoned:
            raise RuntimeError(f"{self._name} was abandoned")
        return self._future.result(timeout=timeout)

    def abandon(self) -> None:
        if self._abandoned.is_set():
            return
        self._abandoned.set()
        if not self._future.done():
            log.warning(
                "%s: abandoned after %.2fs; upstream request keeps running until its transport timeout",
                self._name,
                self.elapsed(),
            )
