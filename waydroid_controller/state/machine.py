"""Session lifecycle state machine.

Tracks the container's SessionState, the installed ImagePackageState and
the single pending session-affecting operation. It knows nothing about
commands or the UI; illegal requests raise StateConflict and the caller
decides how to degrade.
"""

from __future__ import annotations

import itertools
import logging
from enum import Enum

from waydroid_controller.exceptions import StateConflict
from waydroid_controller.models import (
    ImagePackageState,
    OperationKind,
    PendingOperation,
    SessionState,
)

logger = logging.getLogger(__name__)


class SessionEvent(Enum):
    """Inputs that move the session between lifecycle states."""

    RUNTIME_INSTALLED = "runtime_installed"
    ENABLE = "enable"
    READY = "ready"
    START_FAILED = "start_failed"
    DISABLE = "disable"


TRANSITIONS: dict[tuple[SessionState, SessionEvent], SessionState] = {
    (SessionState.NOT_INSTALLED, SessionEvent.RUNTIME_INSTALLED): SessionState.STOPPED,
    (SessionState.STOPPED, SessionEvent.ENABLE): SessionState.STARTING,
    (SessionState.STARTING, SessionEvent.READY): SessionState.RUNNING,
    (SessionState.STARTING, SessionEvent.START_FAILED): SessionState.STOPPED,
    (SessionState.RUNNING, SessionEvent.DISABLE): SessionState.STOPPED,
}

# States in which each session-affecting operation may begin
ALLOWED_FROM: dict[OperationKind, frozenset[SessionState]] = {
    OperationKind.ENABLE: frozenset({SessionState.STOPPED}),
    OperationKind.DISABLE: frozenset({SessionState.RUNNING}),
    OperationKind.TOGGLE_UEVENT: frozenset({SessionState.RUNNING}),
    OperationKind.FACTORY_RESET: frozenset({SessionState.STOPPED}),
    OperationKind.INSTALL_IMAGE: frozenset({SessionState.STOPPED}),
    OperationKind.INSTALL_RUNTIME: frozenset({SessionState.NOT_INSTALLED}),
}


class SessionStateMachine:
    """Lifecycle and exclusivity rules for the single container session."""

    def __init__(
        self,
        state: SessionState = SessionState.NOT_INSTALLED,
        image_state: ImagePackageState = ImagePackageState.NONE,
    ) -> None:
        self.state = state
        self.image_state = image_state
        self.pending: PendingOperation | None = None
        self._ids = itertools.count(1)

    def can(self, event: SessionEvent) -> bool:
        """Whether ``event`` is legal from the current state."""
        return (self.state, event) in TRANSITIONS

    def transition(self, event: SessionEvent) -> SessionState:
        """Apply ``event`` and return the new state.

        Raises:
            StateConflict: If the event is not legal from the current state.
        """
        target = TRANSITIONS.get((self.state, event))
        if target is None:
            raise StateConflict(
                f"Cannot apply {event.value} while {self.state.value}",
                operation=event.value,
                state=self.state.value,
            )
        logger.info("Session %s -> %s (%s)", self.state.value, target.value, event.value)
        self.state = target
        return target

    # =========================================================================
    # Pending operation
    # =========================================================================

    def begin(self, kind: OperationKind) -> PendingOperation:
        """Claim the pending slot for a session-affecting operation.

        Raises:
            StateConflict: If another operation is pending or ``kind`` is not
                permitted from the current state.
        """
        if self.pending is not None:
            raise StateConflict(
                "Another session operation is pending",
                operation=kind.value,
                state=self.state.value,
                pending=str(self.pending),
            )
        if self.state not in ALLOWED_FROM[kind]:
            raise StateConflict(
                f"{kind.value} not permitted while {self.state.value}",
                operation=kind.value,
                state=self.state.value,
            )
        self.pending = PendingOperation(kind=kind, id=next(self._ids))
        logger.debug("Pending operation %s started", self.pending)
        return self.pending

    def is_current(self, op: PendingOperation) -> bool:
        """Whether ``op`` still holds the pending slot."""
        return self.pending == op

    def finish(self, op: PendingOperation) -> bool:
        """Release the pending slot if ``op`` still holds it.

        Returns:
            True if released, False if ``op`` was stale.
        """
        if self.pending != op:
            logger.debug("Ignoring finish of stale operation %s", op)
            return False
        logger.debug("Pending operation %s finished", op)
        self.pending = None
        return True

    def require_independent(self, operation: str) -> None:
        """Check an app-level operation may run alongside others.

        Independent operations need a running session and no pending
        session-affecting operation.

        Raises:
            StateConflict: Otherwise.
        """
        if self.state is not SessionState.RUNNING:
            raise StateConflict(
                f"{operation} requires a running session",
                operation=operation,
                state=self.state.value,
            )
        if self.pending is not None:
            raise StateConflict(
                f"{operation} blocked by pending operation",
                operation=operation,
                state=self.state.value,
                pending=str(self.pending),
            )

    def reset(self, state: SessionState, image_state: ImagePackageState) -> None:
        """Adopt probed ground truth, dropping any pending operation."""
        if self.pending is not None:
            logger.debug("Dropping pending operation %s on reset", self.pending)
        self.pending = None
        self.state = state
        self.image_state = image_state
