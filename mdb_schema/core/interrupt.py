"""
Cancellation token for reconciliation runs.

An Interrupt is created by the caller and passed into the engine. Whoever
owns the process (the CLI) calls trigger() from a signal handler; the
registered callbacks run once, typically closing the database connection
and cancelling the running task. The engine calls check() between steps.

This module is part of MDB_SCHEMA - MongoDB Schema Reconciler.
"""

import logging
from typing import Callable, List

from ..exceptions import ReconciliationInterrupted

logger = logging.getLogger(__name__)


class Interrupt:
    def __init__(self):
        self._callbacks: List[Callable[[], None]] = []
        self._triggered = False

    @property
    def triggered(self) -> bool:
        return self._triggered

    def on_interrupt(self, callback: Callable[[], None]) -> None:
        """
        Register a callback to run when the interrupt fires.

        Callbacks registered after the interrupt fired run immediately.
        """
        if self._triggered:
            callback()
            return
        self._callbacks.append(callback)

    def trigger(self) -> None:
        """Fire the interrupt. Safe to call more than once."""
        if self._triggered:
            return
        self._triggered = True
        logger.debug(f"Interrupt received, running {len(self._callbacks)} callback(s)")

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                # Best effort: remaining callbacks still run
                logger.warning(f"Interrupt callback failed: {e}", exc_info=True)

    def check(self, step: str = "") -> None:
        """Raise ReconciliationInterrupted if the interrupt has fired."""
        if self._triggered:
            raise ReconciliationInterrupted(step)
