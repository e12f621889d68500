"""
State machine for a print attempt.

    idle -> preparing -> awaiting_signature -> submitting <-> confirming
         -> success | partial_success | error

A declined signature goes back to idle. Terminal states may start a new
attempt (preparing) or be reset to idle.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import replace

from interfaces.core import PrintProgress, PrintStatus
from utils.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[PrintProgress], Awaitable[None] | None]

_TERMINAL_EXITS = frozenset({PrintStatus.IDLE, PrintStatus.PREPARING})

TRANSITIONS: dict[PrintStatus, frozenset[PrintStatus]] = {
    PrintStatus.IDLE: frozenset({PrintStatus.PREPARING}),
    PrintStatus.PREPARING: frozenset({PrintStatus.AWAITING_SIGNATURE, PrintStatus.ERROR}),
    PrintStatus.AWAITING_SIGNATURE: frozenset(
        {PrintStatus.SUBMITTING, PrintStatus.IDLE, PrintStatus.ERROR}
    ),
    PrintStatus.SUBMITTING: frozenset(
        {
            PrintStatus.SUBMITTING,
            PrintStatus.CONFIRMING,
            PrintStatus.SUCCESS,
            PrintStatus.PARTIAL_SUCCESS,
            PrintStatus.ERROR,
        }
    ),
    PrintStatus.CONFIRMING: frozenset(
        {
            PrintStatus.SUBMITTING,
            PrintStatus.SUCCESS,
            PrintStatus.PARTIAL_SUCCESS,
            PrintStatus.ERROR,
        }
    ),
    PrintStatus.SUCCESS: _TERMINAL_EXITS,
    PrintStatus.PARTIAL_SUCCESS: _TERMINAL_EXITS,
    PrintStatus.ERROR: _TERMINAL_EXITS,
}


class InvalidTransitionError(Exception):
    """Raised on a status change the state machine does not allow."""

    def __init__(self, current: PrintStatus, target: PrintStatus):
        super().__init__(f"Invalid print state transition: {current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: PrintStatus, target: PrintStatus) -> bool:
    return target in TRANSITIONS[current]


class ProgressTracker:
    """Holds the current PrintProgress and enforces the transition table."""

    def __init__(self, callback: ProgressCallback | None = None):
        self.callback = callback
        self.progress = PrintProgress()

    @property
    def status(self) -> PrintStatus:
        return self.progress.status

    async def transition(self, status: PrintStatus, **changes) -> PrintProgress:
        """Move to ``status`` and apply progress field ``changes``.

        Raises:
            InvalidTransitionError: If the table forbids the move.
        """
        if not can_transition(self.progress.status, status):
            raise InvalidTransitionError(self.progress.status, status)
        self.progress = replace(self.progress, status=status, **changes)
        await self._notify()
        return self.progress

    async def reset(self) -> None:
        """Return to idle with cleared counters."""
        if self.progress.status is not PrintStatus.IDLE:
            await self.transition(
                PrintStatus.IDLE, message="", current_tx=0, total_tx=0, percentage=0
            )

    async def _notify(self) -> None:
        if self.callback is None:
            return
        # Callback errors are logged, never propagated
        try:
            outcome = self.callback(self.progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Progress callback failed on {self.progress.status.value}: {e!s}")
