"""Main Textual app class.

This module provides the Waydroid control panel. The app is the UI
projection for the OperationCoordinator: widget events are routed to
coordinator operations, and the coordinator pushes control enablement,
labels, the app list and switch positions back through the
``UiProjection`` methods implemented here.
"""

from __future__ import annotations

from functools import partial
from typing import Callable

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, VerticalScroll
from textual.widgets import Button, Footer, Header, Input, Label, Select, Static, Switch

from waydroid_controller.coordinator import OperationCoordinator
from waydroid_controller.executor import CommandExecutor
from waydroid_controller.mailbox import ResultMailbox
from waydroid_controller.models import (
    AppEntry,
    ControlFlags,
    ControllerConfig,
    ImagePackageState,
)
from waydroid_controller.state import (
    ControllerState,
    ImageStateChanged,
    PendingChanged,
    Reinitialized,
    SessionStateChanged,
)
from waydroid_controller.widgets import SessionStatusWidget

ExecutorFactory = Callable[[ResultMailbox], CommandExecutor]

# Widget ids governed by each ControlFlags field
CONTROL_WIDGETS: dict[str, tuple[str, ...]] = {
    "session_toggle": ("session-switch",),
    "uevent_toggle": ("uevent-switch",),
    "app_selector": ("app-select",),
    "launch_app": ("launch-button",),
    "remove_app": ("remove-button",),
    "install_app": ("apk-path", "install-app-button"),
    "show_ui": ("show-ui-button",),
    "refresh": ("refresh-button",),
    "factory_reset": ("factory-reset-button",),
    "image_selector": ("vanilla-switch", "gapps-switch"),
    "install_image": ("install-image-button",),
    "install_runtime": ("install-runtime-button",),
}


class WaydroidPanelApp(App):
    """Waydroid control panel TUI application."""

    TITLE = "Waydroid"

    CSS = """
    #panel {
        padding: 1 2;
    }

    .section-header {
        text-style: bold;
        margin-top: 1;
    }

    .row {
        height: auto;
        margin-bottom: 1;
    }

    .row-label {
        width: 24;
        padding-top: 1;
    }

    .info-value {
        padding-top: 1;
    }

    #app-select {
        width: 40;
    }

    #apk-path {
        width: 40;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("r", "refresh", "Refresh"),
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(
        self,
        config: ControllerConfig | None = None,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        """Initialize the application.

        Args:
            config: Controller configuration; defaults when omitted.
            executor_factory: Builds the command executor from the mailbox.
                Tests pass a factory for a scripted executor.
        """
        super().__init__()
        self.config = config or ControllerConfig()
        self.state = ControllerState()
        self.state.connect_app(self)
        self._executor_factory = executor_factory or partial(
            CommandExecutor, max_workers=self.config.settings.worker_threads
        )
        self.coordinator: OperationCoordinator | None = None

    def compose(self) -> ComposeResult:
        """Compose the panel layout."""
        yield Header()
        with VerticalScroll(id="panel"):
            yield Static("Container", classes="section-header")
            yield SessionStatusWidget(id="session-status")
            with Horizontal(classes="row"):
                yield Label("Session", classes="row-label")
                yield Switch(id="session-switch")
            with Horizontal(classes="row"):
                yield Label("Hotplug (uevent)", classes="row-label")
                yield Switch(id="uevent-switch")
            with Horizontal(classes="row"):
                yield Label("IP address", classes="row-label")
                yield Label("", id="address-label", classes="info-value")
            with Horizontal(classes="row"):
                yield Label("Vendor", classes="row-label")
                yield Label("", id="vendor-label", classes="info-value")
            with Horizontal(classes="row"):
                yield Label("Version", classes="row-label")
                yield Label("", id="version-label", classes="info-value")
            with Horizontal(classes="row"):
                yield Button("Show full UI", id="show-ui-button")
                yield Button("Refresh", id="refresh-button")

            yield Static("Apps", classes="section-header")
            with Horizontal(classes="row"):
                yield Select([], id="app-select", prompt="Select app...")
                yield Button("Launch", id="launch-button", variant="primary")
                yield Button("Remove", id="remove-button", variant="warning")
            with Horizontal(classes="row"):
                yield Input(placeholder="Path to .apk", id="apk-path")
                yield Button("Install APK", id="install-app-button")

            yield Static("Image", classes="section-header")
            with Horizontal(classes="row"):
                yield Label("Vanilla", classes="row-label")
                yield Switch(id="vanilla-switch")
            with Horizontal(classes="row"):
                yield Label("GApps", classes="row-label")
                yield Switch(id="gapps-switch")
            with Horizontal(classes="row"):
                yield Button("Install image", id="install-image-button")
                yield Button("Factory reset", id="factory-reset-button", variant="error")

            yield Static("Runtime", classes="section-header")
            with Horizontal(classes="row"):
                yield Button("Install Waydroid", id="install-runtime-button")
        yield Footer()

    def on_mount(self) -> None:
        """Create the executor and coordinator, then probe the host."""
        mailbox = ResultMailbox.for_running_loop()
        executor = self._executor_factory(mailbox)
        self.coordinator = OperationCoordinator(
            executor, self, config=self.config, state=self.state
        )
        self.set_enabled_controls(self.state.flags)
        self.coordinator.initialize()

    def on_unmount(self) -> None:
        if self.coordinator is not None:
            self.coordinator.shutdown()

    # =========================================================================
    # UiProjection
    # =========================================================================

    def set_enabled_controls(self, flags: ControlFlags) -> None:
        for field_name, widget_ids in CONTROL_WIDGETS.items():
            enabled = getattr(flags, field_name)
            for widget_id in widget_ids:
                self.query_one(f"#{widget_id}").disabled = not enabled

    def set_info_labels(self, address: str, vendor: str, version: str) -> None:
        self.query_one("#address-label", Label).update(address)
        self.query_one("#vendor-label", Label).update(vendor)
        self.query_one("#version-label", Label).update(version)

    def set_app_snapshot(self, apps: list[AppEntry]) -> None:
        names = list(dict.fromkeys(app.display_name for app in apps))
        self.query_one("#app-select", Select).set_options(
            [(name, name) for name in names]
        )

    def set_toggle_state(self, name: str, value: bool) -> None:
        switch = self.query_one(f"#{name}-switch", Switch)
        with switch.prevent(Switch.Changed):
            switch.value = value

    # =========================================================================
    # Widget events
    # =========================================================================

    def on_switch_changed(self, event: Switch.Changed) -> None:
        """Route user-driven switch changes to the coordinator."""
        if self.coordinator is None:
            return
        switch_id = event.switch.id
        if switch_id == "session-switch":
            self.coordinator.set_session_enabled(event.value)
        elif switch_id == "uevent-switch":
            self.coordinator.toggle_uevent(event.value)
        elif switch_id in ("vanilla-switch", "gapps-switch"):
            variant = (
                ImagePackageState.VANILLA
                if switch_id == "vanilla-switch"
                else ImagePackageState.GAPPS
            )
            # Radio pair: switching one off selects the other
            self.coordinator.select_image(variant if event.value else variant.other)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        """Route button presses to the coordinator."""
        if self.coordinator is None:
            return
        button_id = event.button.id
        if button_id == "launch-button":
            name = self._selected_app()
            if name is not None:
                self.coordinator.launch_app(name)
        elif button_id == "remove-button":
            name = self._selected_app()
            if name is not None:
                self.coordinator.remove_app(name)
        elif button_id == "install-app-button":
            path = self.query_one("#apk-path", Input).value.strip()
            if path:
                self.coordinator.install_app(path)
        elif button_id == "show-ui-button":
            self.coordinator.show_full_ui()
        elif button_id == "refresh-button":
            self.coordinator.refresh_info()
        elif button_id == "factory-reset-button":
            self.coordinator.factory_reset()
        elif button_id == "install-image-button":
            self.coordinator.install_image()
        elif button_id == "install-runtime-button":
            self.coordinator.install_runtime()

    def _selected_app(self) -> str | None:
        value = self.query_one("#app-select", Select).value
        # Blank selection is a sentinel, not a string
        return value if isinstance(value, str) else None

    # =========================================================================
    # State messages
    # =========================================================================

    def on_session_state_changed(self, message: SessionStateChanged) -> None:
        self.query_one(SessionStatusWidget).set_session_state(message.new)

    def on_image_state_changed(self, message: ImageStateChanged) -> None:
        self.query_one(SessionStatusWidget).set_image_state(message.image_state)

    def on_pending_changed(self, message: PendingChanged) -> None:
        self.query_one(SessionStatusWidget).set_pending(message.pending)

    def on_reinitialized(self, message: Reinitialized) -> None:
        status = self.query_one(SessionStatusWidget)
        status.set_session_state(self.state.session_state)
        status.set_image_state(self.state.image_state)
        status.set_pending(self.state.pending)

    def action_refresh(self) -> None:
        """Refresh container info and the app list."""
        if self.coordinator is not None:
            self.coordinator.refresh_info()
