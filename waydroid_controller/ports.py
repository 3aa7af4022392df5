"""UI projection abstraction.

The coordinator drives whatever displays the controller through this
protocol, so the Textual panel, a recording fake for tests, or another
front end can be plugged in without touching the orchestration code.

All methods are called on the control thread only, from inside operations
or mailbox handlers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from waydroid_controller.models import AppEntry, ControlFlags


@runtime_checkable
class UiProjection(Protocol):
    """Callback contract consumed by the OperationCoordinator."""

    def set_enabled_controls(self, flags: ControlFlags) -> None:
        """Apply enablement for every control at once."""
        ...

    def set_info_labels(self, address: str, vendor: str, version: str) -> None:
        """Show the container's address, vendor type and version."""
        ...

    def set_app_snapshot(self, apps: list[AppEntry]) -> None:
        """Replace the list of guest apps offered for selection."""
        ...

    def set_toggle_state(self, name: str, value: bool) -> None:
        """Move a switch or radio ("session", "uevent", "vanilla", "gapps")
        without triggering its change handler."""
        ...


class NullProjection:
    """Projection that discards every update (headless use)."""

    def set_enabled_controls(self, flags: ControlFlags) -> None:
        pass

    def set_info_labels(self, address: str, vendor: str, version: str) -> None:
        pass

    def set_app_snapshot(self, apps: list[AppEntry]) -> None:
        pass

    def set_toggle_state(self, name: str, value: bool) -> None:
        pass
