"""State management package.

This package provides the session state machine and the observable
controller state built around it. For external observation (CLI, tests),
use ``ControllerState.to_snapshot()``.
"""

from waydroid_controller.state.controller_state import TOGGLE_NAMES, ControllerState
from waydroid_controller.state.events import (
    AppsChanged,
    ControlsChanged,
    ImageStateChanged,
    InfoChanged,
    PendingChanged,
    Reinitialized,
    SessionStateChanged,
    StateEvent,
    StateMessage,
    ToggleChanged,
)
from waydroid_controller.state.machine import (
    ALLOWED_FROM,
    TRANSITIONS,
    SessionEvent,
    SessionStateMachine,
)
from waydroid_controller.state.snapshot import StateSnapshot

__all__ = [
    # State
    "ControllerState",
    "TOGGLE_NAMES",
    "StateSnapshot",
    # State machine
    "SessionStateMachine",
    "SessionEvent",
    "TRANSITIONS",
    "ALLOWED_FROM",
    # Events
    "StateEvent",
    "StateMessage",
    "SessionStateChanged",
    "ImageStateChanged",
    "PendingChanged",
    "AppsChanged",
    "InfoChanged",
    "ControlsChanged",
    "ToggleChanged",
    "Reinitialized",
]
