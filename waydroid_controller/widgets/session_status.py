"""Session status indicator widget.

Displays the container's lifecycle state, the installed image and the
session operation currently in flight.

Display format:
    ● running  image: gapps
    ◐ starting  image: vanilla  (enable#3)

Status icons:
- ● (green) - Running
- ◐ (yellow) - Starting
- ○ (dim) - Stopped
- ✗ (red) - Runtime not installed
"""

from __future__ import annotations

from typing import Any

from rich.text import Text
from textual.widgets import Static

from waydroid_controller.models import ImagePackageState, PendingOperation, SessionState

STATE_ICONS: dict[SessionState, tuple[str, str]] = {
    SessionState.RUNNING: ("●", "green"),
    SessionState.STARTING: ("◐", "yellow"),
    SessionState.STOPPED: ("○", "dim"),
    SessionState.NOT_INSTALLED: ("✗", "red"),
}


class SessionStatusWidget(Static):
    """Shows session state, image variant and pending operation."""

    DEFAULT_CSS = """
    SessionStatusWidget {
        height: auto;
        min-height: 1;
        padding: 0 1;
    }
    """

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._session_state = SessionState.NOT_INSTALLED
        self._image_state = ImagePackageState.NONE
        self._pending: PendingOperation | None = None

    def on_mount(self) -> None:
        self.update(self.render_status())

    @property
    def session_state(self) -> SessionState:
        return self._session_state

    def set_session_state(self, state: SessionState) -> None:
        self._session_state = state
        self.update(self.render_status())

    def set_image_state(self, image_state: ImagePackageState) -> None:
        self._image_state = image_state
        self.update(self.render_status())

    def set_pending(self, pending: PendingOperation | None) -> None:
        self._pending = pending
        self.update(self.render_status())

    def render_status(self) -> Text:
        """Build the status line."""
        icon, style = STATE_ICONS[self._session_state]
        text = Text()
        text.append(f"{icon} ", style=style)
        text.append(self._session_state.value.replace("_", " "), style="bold")
        text.append("  image: ", style="dim")
        text.append(self._image_state.value)
        if self._pending is not None:
            text.append(f"  ({self._pending})", style="italic yellow")
        return text
