"""Immutable state snapshot for external observation.

This module provides a read-only view of the controller state suitable
for the headless CLI and for tests.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from waydroid_controller.models import (
        AppEntry,
        ControlFlags,
        ImagePackageState,
        InfoLabels,
        PendingOperation,
        SessionState,
    )


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable snapshot of controller state.

    Example:
        snapshot = coordinator.state.to_snapshot()
        print(f"Session: {snapshot.session_state.value}")
        print(f"Apps: {len(snapshot.apps)}")
    """

    session_state: SessionState
    image_state: ImagePackageState
    pending: PendingOperation | None
    apps: tuple[AppEntry, ...]
    info: InfoLabels
    flags: ControlFlags
    toggles: dict[str, bool]
    selected_image: ImagePackageState

    @property
    def is_running(self) -> bool:
        return self.session_state.value == "running"

    @property
    def app_names(self) -> list[str]:
        return [app.display_name for app in self.apps]

    def to_dict(self) -> dict[str, Any]:
        """JSON-compatible representation."""
        return {
            "session_state": self.session_state.value,
            "image_state": self.image_state.value,
            "pending": str(self.pending) if self.pending else None,
            "apps": [asdict(app) for app in self.apps],
            "info": asdict(self.info),
            "controls": asdict(self.flags),
            "toggles": dict(self.toggles),
            "selected_image": self.selected_image.value,
        }
