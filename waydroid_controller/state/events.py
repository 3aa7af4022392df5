"""State events and Textual message classes.

This module defines the events that can be dispatched from state changes
and the corresponding Textual Message classes for UI updates.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from textual.message import Message

if TYPE_CHECKING:
    from waydroid_controller.models import (
        AppEntry,
        ControlFlags,
        ImagePackageState,
        InfoLabels,
        PendingOperation,
        SessionState,
    )


class StateEvent(Enum):
    """Events that can be dispatched from state changes."""

    SESSION_STATE_CHANGED = "session_state_changed"
    IMAGE_STATE_CHANGED = "image_state_changed"
    PENDING_CHANGED = "pending_changed"
    APPS_CHANGED = "apps_changed"
    INFO_CHANGED = "info_changed"
    CONTROLS_CHANGED = "controls_changed"
    TOGGLE_CHANGED = "toggle_changed"
    REINITIALIZED = "reinitialized"


# =============================================================================
# Textual Messages for State Events
# =============================================================================


class StateMessage(Message):
    """Base class for state change messages."""

    pass


class SessionStateChanged(StateMessage):
    """Posted when the container session changes lifecycle state."""

    def __init__(self, old: SessionState, new: SessionState) -> None:
        super().__init__()
        self.old = old
        self.new = new


class ImageStateChanged(StateMessage):
    """Posted when the installed image variant changes."""

    def __init__(self, image_state: ImagePackageState) -> None:
        super().__init__()
        self.image_state = image_state


class PendingChanged(StateMessage):
    """Posted when a session operation starts or finishes."""

    def __init__(self, pending: PendingOperation | None) -> None:
        super().__init__()
        self.pending = pending


class AppsChanged(StateMessage):
    """Posted when the app snapshot is replaced."""

    def __init__(self, apps: list[AppEntry]) -> None:
        super().__init__()
        self.apps = apps


class InfoChanged(StateMessage):
    """Posted when address, vendor or version change."""

    def __init__(self, info: InfoLabels) -> None:
        super().__init__()
        self.info = info


class ControlsChanged(StateMessage):
    """Posted when control enablement changes."""

    def __init__(self, flags: ControlFlags) -> None:
        super().__init__()
        self.flags = flags


class ToggleChanged(StateMessage):
    """Posted when a switch or radio position is set by the controller."""

    def __init__(self, name: str, value: bool) -> None:
        super().__init__()
        self.name = name
        self.value = value


class Reinitialized(StateMessage):
    """Posted after a re-probe of the host replaced all state."""

    pass
