"""Operation coordinator for the Waydroid control surface.

The coordinator is the only writer of ControllerState. Public operations
run on the control thread (the asyncio loop). They validate the request
against the state machine, dispatch commands through the CommandExecutor
and apply results in handlers delivered by the ResultMailbox.

Two kinds of operations exist:

- **Session-affecting** (enable, disable, uevent toggle, factory reset,
  image install, runtime install) claim the single PendingOperation slot.
  A second one is rejected while the slot is held.
- **Independent** (refresh info, list/launch/remove/install apps, show UI)
  need a running session and no pending session-affecting operation, but
  may overlap each other.

Rejected requests are StateConflicts: they are logged at DEBUG and turned
into a no-op or a visual revert of the control that issued them.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Any, Callable

from waydroid_controller.commands import WaydroidCommands
from waydroid_controller.exceptions import ParseFailure, StateConflict, record_error
from waydroid_controller.executor import CommandExecutor
from waydroid_controller.logging_config import log_command_result
from waydroid_controller.models import (
    PROTECTED_PACKAGES,
    AppEntry,
    CommandResult,
    ControlFlags,
    ControllerConfig,
    HostProbe,
    ImagePackageState,
    InfoLabels,
    OperationKind,
    PendingOperation,
    SessionState,
)
from waydroid_controller.parsers import (
    find_package,
    parse_address,
    parse_app_list,
    parse_image_state,
    parse_prop_bool,
    parse_session_running,
    parse_vendor,
    parse_version,
)
from waydroid_controller.ports import NullProjection, UiProjection
from waydroid_controller.state import ControllerState, SessionEvent

logger = logging.getLogger(__name__)


class OperationCoordinator:
    """Serializes user requests against the container's lifecycle.

    Attributes:
        executor: Runs external commands.
        projection: Receives every UI-facing update.
        state: Observable controller state (owned exclusively by this object).
        commands: Builds argv for the external tools.
    """

    def __init__(
        self,
        executor: CommandExecutor,
        projection: UiProjection | None = None,
        *,
        config: ControllerConfig | None = None,
        state: ControllerState | None = None,
        commands: WaydroidCommands | None = None,
    ) -> None:
        self.executor = executor
        self.projection: UiProjection = projection or NullProjection()
        self.config = config or ControllerConfig()
        self.settings = self.config.settings
        self.commands = commands or WaydroidCommands(self.config.commands)
        self.state = state or ControllerState()

        self._timers: set[asyncio.TimerHandle] = set()
        self._start_timer: asyncio.TimerHandle | None = None
        self._probe_generation = 0
        self._initialized = False
        self._removing = False

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self.executor.mailbox.loop

    # =========================================================================
    # Start-up and re-initialization
    # =========================================================================

    def initialize(self) -> Future[HostProbe | None] | None:
        """Probe the host once at start-up and adopt what it reports.

        Returns:
            Future of the probe, or None if already initialized.
        """
        if self._initialized:
            logger.debug("initialize() called twice; use reinitialize()")
            return None
        self._initialized = True
        logger.info("Initializing controller")
        return self._start_probe()

    def reinitialize(self) -> Future[HostProbe | None]:
        """Re-probe the host after an install or reset changed it.

        Timers from earlier operations are cancelled. A pending operation
        keeps its slot until the probe result replaces all state.
        """
        logger.info("Re-initializing controller")
        self._initialized = True
        self._cancel_timers()
        self._removing = False
        return self._start_probe()

    def _start_probe(self) -> Future[HostProbe | None]:
        self._probe_generation += 1
        return self.executor.submit(
            self._probe_host,
            partial(self._apply_probe, self._probe_generation),
            partial(self._on_probe_failed, self._probe_generation),
        )

    def _probe_host(self) -> HostProbe:
        """Worker: gather runtime, session, image and uevent state."""
        if not Path(self.config.commands.runtime_binary).exists():
            return HostProbe(runtime_installed=False)

        status = self.executor.run(self.commands.status())
        running = status.ok and parse_session_running(status.stdout)

        image_state = self._probe_image_state()

        uevent: bool | None = None
        if running:
            prop = self.executor.run(self.commands.uevent_get())
            if prop.ok:
                uevent = parse_prop_bool(prop.stdout)

        return HostProbe(
            runtime_installed=True,
            session_running=running,
            image_state=image_state,
            uevent_enabled=uevent,
        )

    def _probe_image_state(self) -> ImagePackageState:
        """Worker: ask the package manager which image variant is installed."""
        packages = self.executor.run(self.commands.installed_packages())
        if not packages.ok:
            log_command_result(logger, packages)
            return ImagePackageState.NONE
        return parse_image_state(
            packages.stdout,
            vanilla_package=self.config.commands.vanilla_package,
            gapps_package=self.config.commands.gapps_package,
        )

    def _on_probe_failed(self, generation: int, error: Exception) -> None:
        """Handler: the probe itself crashed; unlock what the last state allows."""
        if generation != self._probe_generation:
            return
        logger.error("Host probe failed: %s", error)
        pending = self.state.pending
        if pending is not None:
            self.state.finish(pending)
        self._publish_flags(self._layout())

    def _apply_probe(self, generation: int, probe: HostProbe) -> None:
        """Handler: replace all state with the probed ground truth."""
        if generation != self._probe_generation:
            logger.debug("Ignoring superseded host probe #%d", generation)
            return

        if not probe.runtime_installed:
            session_state = SessionState.NOT_INSTALLED
        elif probe.session_running:
            session_state = SessionState.RUNNING
        else:
            session_state = SessionState.STOPPED

        logger.info(
            "Host probe: session=%s image=%s",
            session_state.value,
            probe.image_state.value,
        )
        self.state.reset(session_state, probe.image_state)

        self._publish_toggle("session", session_state is SessionState.RUNNING)
        self._publish_toggle("uevent", bool(probe.uevent_enabled))
        self._publish_image_toggles(probe.image_state)

        if session_state is SessionState.RUNNING:
            self._publish_flags(self._layout())
            self.refresh_info()
        else:
            self._publish_info(InfoLabels())
            self._publish_apps([])
            self._publish_flags(self._layout())

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def set_session_enabled(self, enabled: bool) -> bool:
        """Route the session switch to enable() or disable()."""
        return self.enable() if enabled else self.disable()

    def enable(self) -> bool:
        """Start the container session.

        Moves STOPPED -> STARTING, streams ``waydroid session start`` for the
        ready marker and arms a fallback timer. Whichever fires first moves
        the session to RUNNING; the other is ignored.

        Returns:
            True if the start was dispatched.
        """
        try:
            op = self.state.begin(OperationKind.ENABLE)
        except StateConflict as e:
            logger.debug("enable ignored: %s", e)
            self._revert_session_toggle()
            return False

        self.state.apply(SessionEvent.ENABLE)
        self._publish_toggle("session", True)
        self._publish_flags(ControlFlags.starting())

        marker = self.settings.ready_marker
        self.executor.stream(
            self.commands.session_start(),
            match=lambda line: marker in line,
            on_match=partial(self._on_session_ready, op, "marker"),
            on_exit=partial(self._on_session_start_exit, op),
        )
        self._start_timer = self._call_later(
            self.settings.start_timeout_seconds,
            self._on_session_ready,
            op,
            "timeout",
        )
        return True

    def _on_session_ready(
        self, op: PendingOperation, source: str, line: str | None = None
    ) -> None:
        """Handler/timer: first of ready marker or timeout completes the start."""
        if (
            not self.state.machine.is_current(op)
            or self.state.session_state is not SessionState.STARTING
        ):
            logger.debug("Ignoring %s readiness for %s", source, op)
            return

        if source == "timeout":
            logger.info(
                "No ready marker after %.1fs, assuming the session is up",
                self.settings.start_timeout_seconds,
            )
        else:
            logger.info("Session ready: %s", line)

        self._cancel_start_timer()
        self.state.apply(SessionEvent.READY)
        self.state.finish(op)

        self._publish_toggle("session", True)
        self._publish_flags(self._layout())
        self.refresh_info()
        self._resolve_toggles()
        self._call_later(self.settings.post_start_app_list_delay_seconds, self.list_apps)

    def _on_session_start_exit(self, op: PendingOperation, result: CommandResult) -> None:
        """Handler: session start output ended without the ready marker."""
        if (
            not self.state.machine.is_current(op)
            or self.state.session_state is not SessionState.STARTING
        ):
            log_command_result(logger, result, failure_level=logging.DEBUG)
            return

        if result.ok:
            logger.info("Session start exited without ready marker; waiting for timeout")
            return

        error = result.error()
        logger.error("Session start failed: %s", error)
        if error is not None:
            record_error(error)

        self._cancel_start_timer()
        self.state.apply(SessionEvent.START_FAILED)
        self.state.finish(op)
        self._publish_toggle("session", False)
        self._publish_flags(self._layout())

    def _resolve_toggles(self) -> None:
        """Read uevent and image toggle positions from the host."""

        def probe() -> tuple[bool | None, ImagePackageState]:
            prop = self.executor.run(self.commands.uevent_get())
            uevent = parse_prop_bool(prop.stdout) if prop.ok else None
            return uevent, self._probe_image_state()

        self.executor.submit(probe, self._on_toggles_resolved)

    def _on_toggles_resolved(self, resolved: tuple[bool | None, ImagePackageState]) -> None:
        if self.state.session_state is not SessionState.RUNNING:
            return
        uevent, image_state = resolved
        if uevent is not None:
            self._publish_toggle("uevent", uevent)
        if image_state is not ImagePackageState.NONE:
            self.state.set_image_state(image_state)
        self.state.selected_image = self.state.image_state
        self._publish_image_toggles(self.state.image_state)

    def disable(self) -> bool:
        """Stop the container session.

        ``waydroid session stop`` runs on the control thread; the UI must not
        proceed until the container is definitely down.

        Returns:
            True if the session was stopped.
        """
        try:
            op = self.state.begin(OperationKind.DISABLE)
        except StateConflict as e:
            logger.debug("disable ignored: %s", e)
            self._revert_session_toggle()
            return False

        result = self.executor.run(self.commands.session_stop())
        if not result.ok:
            error = result.error()
            logger.error("Session stop failed: %s", error)
            if error is not None:
                record_error(error)
            self.state.finish(op)
            self._publish_toggle("session", True)
            self._publish_flags(self._layout())
            return False

        self.state.apply(SessionEvent.DISABLE)
        self.state.finish(op)

        self._publish_info(InfoLabels())
        self._publish_apps([])
        self._publish_toggle("session", False)
        self._publish_flags(self._layout())
        return True

    def toggle_uevent(self, desired: bool) -> bool:
        """Set ``persist.waydroid.uevent``; only while the session runs.

        Otherwise the switch is moved back and no command is sent.

        Returns:
            True if the property was written.
        """
        previous = self.state.toggles["uevent"]
        try:
            op = self.state.begin(OperationKind.TOGGLE_UEVENT)
        except StateConflict as e:
            logger.debug("uevent toggle ignored: %s", e)
            self._publish_toggle("uevent", previous)
            return False

        result = self.executor.run(self.commands.uevent_set(desired))
        self.state.finish(op)
        if not result.ok:
            log_command_result(logger, result, failure_level=logging.ERROR)
            self._publish_toggle("uevent", previous)
            return False

        self._publish_toggle("uevent", desired)
        return True

    # =========================================================================
    # Information
    # =========================================================================

    def refresh_info(self) -> bool:
        """Refresh address, vendor and version labels and the app list.

        Each probe runs on its own worker and updates its label alone. A
        failing or unparsable probe leaves the previous value shown.

        Returns:
            True if the probes were dispatched.
        """
        try:
            self.state.machine.require_independent("refresh_info")
        except StateConflict as e:
            logger.debug("refresh_info ignored: %s", e)
            return False

        self.executor.run_background(
            self.commands.status(), partial(self._on_info_probe, "address", parse_address)
        )
        self.executor.run_background(
            self.commands.status(), partial(self._on_info_probe, "vendor", parse_vendor)
        )
        self.executor.run_background(
            self.commands.version_get(),
            partial(self._on_info_probe, "version", parse_version),
        )
        self.list_apps()
        return True

    def _on_info_probe(
        self, field: str, parser: Callable[[str], str], result: CommandResult
    ) -> None:
        if self.state.session_state is not SessionState.RUNNING:
            logger.debug("Dropping %s probe: session no longer running", field)
            return
        if not result.ok:
            log_command_result(logger, result)
            return
        try:
            value = parser(result.stdout)
        except ParseFailure as e:
            logger.debug("Keeping previous %s: %s", field, e)
            return
        self._publish_info(replace(self.state.info, **{field: value}))

    # =========================================================================
    # Guest apps
    # =========================================================================

    def list_apps(self) -> bool:
        """Replace the app snapshot from ``waydroid app list``.

        Empty, failing or unparsable output keeps the previous snapshot.

        Returns:
            True if the listing was dispatched.
        """
        try:
            self.state.machine.require_independent("list_apps")
        except StateConflict as e:
            logger.debug("list_apps ignored: %s", e)
            return False

        self.executor.run_background(self.commands.app_list(), self._on_app_list)
        return True

    def _on_app_list(self, result: CommandResult) -> None:
        if self.state.session_state is not SessionState.RUNNING:
            logger.debug("Dropping app list: session no longer running")
            return
        if not result.ok:
            log_command_result(logger, result)
            return
        try:
            apps = parse_app_list(result.stdout)
        except ParseFailure as e:
            logger.debug("Keeping previous app list: %s", e)
            return
        self._publish_apps(apps)

    def _resolve_package(self, display_name: str) -> str | None:
        """Worker: look up the package for a display name right now."""
        result = self.executor.run(self.commands.app_list())
        if not result.ok:
            log_command_result(logger, result)
            return None
        try:
            return find_package(parse_app_list(result.stdout), display_name)
        except ParseFailure:
            return None

    def launch_app(self, display_name: str) -> bool:
        """Launch the app currently listed under ``display_name``.

        The package is resolved when the request is made; if it cannot be
        resolved nothing is launched.

        Returns:
            True if resolution and launch were dispatched.
        """
        try:
            self.state.machine.require_independent("launch_app")
        except StateConflict as e:
            logger.debug("launch_app ignored: %s", e)
            return False

        def work() -> CommandResult | None:
            package = self._resolve_package(display_name)
            if package is None:
                return None
            return self.executor.run(self.commands.app_launch(package))

        self.executor.submit(work, partial(self._on_launch_finished, display_name))
        return True

    def _on_launch_finished(self, display_name: str, result: CommandResult | None) -> None:
        if result is None:
            logger.debug("No package found for %r; nothing launched", display_name)
            return
        if result.ok:
            logger.info("Launched %s", display_name)
        else:
            log_command_result(logger, result)

    def remove_app(self, display_name: str) -> bool:
        """Uninstall the app listed under ``display_name``.

        Protected system packages are never removed. Removal reports no
        reliable completion, so app controls stay locked for a settle
        delay, after which the list is re-read.

        Returns:
            True if package resolution was dispatched.
        """
        try:
            self.state.machine.require_independent("remove_app")
        except StateConflict as e:
            logger.debug("remove_app ignored: %s", e)
            return False
        if self._removing:
            logger.debug("remove_app ignored: removal already settling")
            return False

        self.executor.submit(
            partial(self._resolve_package, display_name),
            partial(self._on_remove_resolved, display_name),
        )
        return True

    def _on_remove_resolved(self, display_name: str, package: str | None) -> None:
        if package is None:
            logger.debug("No package found for %r; nothing removed", display_name)
            return
        if package in PROTECTED_PACKAGES:
            logger.info("Refusing to remove protected package %s", package)
            return
        try:
            self.state.machine.require_independent("remove_app")
        except StateConflict as e:
            logger.debug("Removal of %s dropped: %s", package, e)
            return
        if self._removing:
            return

        logger.info("Removing %s (%s)", display_name, package)
        self._removing = True
        self._publish_flags(self.state.flags.with_app_controls(False))
        self.executor.run_background(
            self.commands.app_remove(package),
            partial(log_command_result, logger),
        )
        self._call_later(self.settings.remove_settle_seconds, self._on_remove_settled)

    def _on_remove_settled(self) -> None:
        self._removing = False
        if self.state.session_state is not SessionState.RUNNING:
            return
        self._publish_flags(self.state.flags.with_app_controls(True))
        self.list_apps()

    def install_app(self, apk_path: str | Path) -> bool:
        """Install an APK, then re-read the app list.

        Returns:
            True if the install was dispatched.
        """
        try:
            self.state.machine.require_independent("install_app")
        except StateConflict as e:
            logger.debug("install_app ignored: %s", e)
            return False

        path = str(apk_path).strip()
        if not path:
            return False

        self.executor.run_background(
            self.commands.app_install(path), partial(self._on_app_installed, path)
        )
        return True

    def _on_app_installed(self, path: str, result: CommandResult) -> None:
        if result.ok:
            logger.info("Installed %s", path)
        else:
            log_command_result(logger, result, failure_level=logging.ERROR)
        self.list_apps()

    def show_full_ui(self) -> bool:
        """Open the full Android UI window."""
        try:
            self.state.machine.require_independent("show_full_ui")
        except StateConflict as e:
            logger.debug("show_full_ui ignored: %s", e)
            return False

        self.executor.run_background(
            self.commands.show_full_ui(), partial(log_command_result, logger)
        )
        return True

    # =========================================================================
    # Host-level operations
    # =========================================================================

    def factory_reset(self) -> bool:
        """Delete the user's container data; only while STOPPED.

        The privileged removal reports no completion, so the control stays
        locked for a cooldown, after which the host is re-probed.

        Returns:
            True if the reset was dispatched.
        """
        try:
            op = self.state.begin(OperationKind.FACTORY_RESET)
        except StateConflict as e:
            logger.debug("factory_reset ignored: %s", e)
            return False

        logger.info("Factory reset requested")
        self._publish_flags(self._locked(self.state.flags))
        self.executor.run_background(
            self.commands.factory_reset(),
            partial(self._on_factory_reset_dispatched, op),
            on_error=partial(self._on_operation_error, op),
        )
        self._call_later(
            self.settings.factory_reset_cooldown_seconds,
            self._on_factory_reset_cooldown,
            op,
        )
        return True

    def _on_factory_reset_dispatched(self, op: PendingOperation, result: CommandResult) -> None:
        if not self.state.machine.is_current(op):
            return
        if not result.spawned:
            error = result.error()
            logger.error("Factory reset failed: %s", error)
            if error is not None:
                record_error(error)
            self.state.finish(op)
            self._publish_flags(self._layout())
            return
        log_command_result(logger, result)

    def _on_factory_reset_cooldown(self, op: PendingOperation) -> None:
        if not self.state.machine.is_current(op):
            return
        logger.info("Factory reset cooldown elapsed")
        self.reinitialize()

    def install_runtime(self) -> bool:
        """Install the container runtime through a privileged terminal.

        Only permitted while the runtime is missing. On success the whole
        controller re-initializes.

        Returns:
            True if the install was dispatched.
        """
        try:
            op = self.state.begin(OperationKind.INSTALL_RUNTIME)
        except StateConflict as e:
            logger.debug("install_runtime ignored: %s", e)
            return False

        logger.info("Installing container runtime")
        self._publish_flags(self._locked(self.state.flags))

        argv = self.commands.install_runtime()
        binary = Path(self.config.commands.runtime_binary)

        def work() -> tuple[CommandResult, bool]:
            result = self.executor.run(argv)
            return result, binary.exists()

        self.executor.submit(
            work,
            partial(self._on_runtime_installed, op),
            partial(self._on_operation_error, op),
        )
        return True

    def _on_runtime_installed(
        self, op: PendingOperation, outcome: tuple[CommandResult, bool]
    ) -> None:
        if not self.state.machine.is_current(op):
            return
        result, installed = outcome
        if result.spawned and installed:
            logger.info("Container runtime installed")
            self.state.apply(SessionEvent.RUNTIME_INSTALLED)
            self._publish_flags(self._locked(ControlFlags.stopped()))
            self.reinitialize()
            return

        error = result.error()
        logger.error("Runtime install failed: %s", error or "runtime binary still missing")
        if error is not None:
            record_error(error)
        self.state.finish(op)
        self._publish_flags(self._layout())

    def select_image(self, variant: ImagePackageState) -> bool:
        """Choose which image variant the install-image control would install."""
        if variant is ImagePackageState.NONE:
            return False
        if (
            self.state.session_state is not SessionState.STOPPED
            or self.state.pending is not None
        ):
            logger.debug("select_image ignored while %s", self.state.session_state.value)
            self._publish_image_toggles(self.state.selected_image)
            return False

        self.state.selected_image = variant
        self._publish_image_toggles(variant)
        self._publish_flags(self._layout())
        return True

    def install_image(self, variant: ImagePackageState | None = None) -> bool:
        """Swap the container image to ``variant``.

        Destroys the current images, installs the variant's package and
        re-initializes the container. A request for the variant already
        installed is a no-op.

        Args:
            variant: Target variant; defaults to the selected one.

        Returns:
            True if the swap was dispatched.
        """
        target = variant or self.state.selected_image
        if target is ImagePackageState.NONE or target is self.state.image_state:
            logger.debug("install_image ignored: %s already installed", target.value)
            return False

        try:
            op = self.state.begin(OperationKind.INSTALL_IMAGE)
        except StateConflict as e:
            logger.debug("install_image ignored: %s", e)
            return False

        logger.info("Installing %s image", target.value)
        self._publish_flags(self._locked(self.state.flags))
        self.executor.run_background(
            self.commands.install_image(target),
            partial(self._on_image_installed, op, target),
            on_error=partial(self._on_operation_error, op),
        )
        return True

    def _on_image_installed(
        self, op: PendingOperation, variant: ImagePackageState, result: CommandResult
    ) -> None:
        if not self.state.machine.is_current(op):
            return
        if result.ok:
            logger.info("Image switched to %s", variant.value)
            self.state.set_image_state(variant)
            self.state.selected_image = variant
            self._publish_image_toggles(variant)
            self.reinitialize()
            return

        error = result.error()
        logger.error("Image install failed: %s", error)
        if error is not None:
            record_error(error)
        self.state.finish(op)
        self._publish_flags(self._layout())

    def _on_operation_error(self, op: PendingOperation, error: Exception) -> None:
        """Handler: a session operation's worker crashed; release its slot."""
        if not self.state.machine.is_current(op):
            return
        logger.error("%s failed: %s", op, error)
        self.state.finish(op)
        self._publish_flags(self._layout())

    # =========================================================================
    # Projection helpers
    # =========================================================================

    def _layout(self) -> ControlFlags:
        """Control enablement implied by the current lifecycle state."""
        session_state = self.state.session_state
        if session_state is SessionState.NOT_INSTALLED:
            return ControlFlags.not_installed()
        if session_state is SessionState.STARTING:
            return ControlFlags.starting()
        if session_state is SessionState.RUNNING:
            return ControlFlags.running()

        selected = self.state.selected_image
        return ControlFlags.stopped(
            install_image=(
                selected is not ImagePackageState.NONE
                and selected is not self.state.image_state
            )
        )

    @staticmethod
    def _locked(flags: ControlFlags) -> ControlFlags:
        """Lock every control that could start another session operation."""
        return replace(
            flags,
            session_toggle=False,
            factory_reset=False,
            image_selector=False,
            install_image=False,
            install_runtime=False,
        )

    def _publish_flags(self, flags: ControlFlags) -> None:
        self.state.set_flags(flags)
        self.projection.set_enabled_controls(flags)

    def _publish_info(self, info: InfoLabels) -> None:
        self.state.set_info(info)
        self.projection.set_info_labels(info.address, info.vendor, info.version)

    def _publish_apps(self, apps: list[AppEntry]) -> None:
        self.state.replace_apps(apps)
        self.projection.set_app_snapshot(list(apps))

    def _publish_toggle(self, name: str, value: bool) -> None:
        self.state.set_toggle(name, value)
        self.projection.set_toggle_state(name, value)

    def _publish_image_toggles(self, variant: ImagePackageState) -> None:
        self._publish_toggle("vanilla", variant is ImagePackageState.VANILLA)
        self._publish_toggle("gapps", variant is ImagePackageState.GAPPS)

    def _revert_session_toggle(self) -> None:
        self._publish_toggle(
            "session",
            self.state.session_state in (SessionState.STARTING, SessionState.RUNNING),
        )

    # =========================================================================
    # Timers
    # =========================================================================

    def _call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        """Run ``callback`` on the control thread after ``delay`` seconds."""

        def fire() -> None:
            self._timers.discard(handle)
            callback(*args)

        handle = self.loop.call_later(delay, fire)
        self._timers.add(handle)
        return handle

    def _cancel_start_timer(self) -> None:
        if self._start_timer is not None:
            self._start_timer.cancel()
            self._timers.discard(self._start_timer)
            self._start_timer = None

    def _cancel_timers(self) -> None:
        for handle in list(self._timers):
            handle.cancel()
        self._timers.clear()
        self._start_timer = None

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    # =========================================================================
    # Teardown
    # =========================================================================

    async def wait_idle(self) -> None:
        """Wait for all dispatched work and its handlers (not for timers)."""
        await self.executor.drain()

    def shutdown(self) -> None:
        """Cancel timers and stop the executor; running commands finish alone."""
        self._cancel_timers()
        self.executor.shutdown()
