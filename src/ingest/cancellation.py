"""Cooperative cancellation token shared by the tasks of one session."""

from __future__ import annotations

import threading

from core.errors import CancellationSignal


class CancellationToken:
    """Thread-safe flag checked by tasks between chunks.

    Setting the flag never interrupts a chunk write in flight; a task
    observes it only at its next check.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self, context: str = "") -> None:
        """Raise ``CancellationSignal`` when the flag is set."""
        if self._event.is_set():
            suffix = f" ({context})" if context else ""
            raise CancellationSignal(f"Import cancelled{suffix}.")
