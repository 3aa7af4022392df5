"""Core dataclasses for session state, apps, command results and config.

Configuration models are designed for JSON serialization using dacite.
"""

from __future__ import annotations

import json
import shlex
from dataclasses import asdict, dataclass, field, replace
from enum import Enum

import dacite

from waydroid_controller.exceptions import NonZeroExit, SpawnFailure


# =============================================================================
# Lifecycle Models
# =============================================================================


class SessionState(Enum):
    """Lifecycle state of the container session."""

    NOT_INSTALLED = "not_installed"  # Runtime binary missing on the host
    STOPPED = "stopped"
    STARTING = "starting"  # Start dispatched, waiting for ready marker or timeout
    RUNNING = "running"


class ImagePackageState(Enum):
    """Root-filesystem image variant installed on the host."""

    NONE = "none"
    VANILLA = "vanilla"
    GAPPS = "gapps"

    @property
    def other(self) -> ImagePackageState:
        """The variant an image swap would switch to."""
        if self is ImagePackageState.VANILLA:
            return ImagePackageState.GAPPS
        if self is ImagePackageState.GAPPS:
            return ImagePackageState.VANILLA
        return ImagePackageState.NONE


class OperationKind(Enum):
    """Session-affecting operations; at most one may be pending."""

    ENABLE = "enable"
    DISABLE = "disable"
    TOGGLE_UEVENT = "toggle_uevent"
    FACTORY_RESET = "factory_reset"
    INSTALL_IMAGE = "install_image"
    INSTALL_RUNTIME = "install_runtime"


@dataclass(frozen=True)
class PendingOperation:
    """Token for the single outstanding session-affecting operation."""

    kind: OperationKind
    id: int

    def __str__(self) -> str:
        return f"{self.kind.value}#{self.id}"


# =============================================================================
# Guest App Models
# =============================================================================


@dataclass(frozen=True)
class AppEntry:
    """A guest application as reported by ``waydroid app list``."""

    display_name: str
    package_name: str


# Guest apps that must never be offered for removal.
PROTECTED_PACKAGES: frozenset[str] = frozenset(
    {
        "com.android.documentsui",
        "com.android.contacts",
        "com.android.camera2",
        "org.lineageos.recorder",
        "com.android.gallery3d",
        "org.lineageos.jelly",
        "org.lineageos.eleven",
        "org.lineageos.etar",
        "com.android.settings",
        "com.android.calculator2",
        "com.android.deskclock",
        "com.android.traceur",
    }
)


# =============================================================================
# Command Results
# =============================================================================


@dataclass
class CommandResult:
    """Outcome of one external command.

    Failures are carried as data: ``spawn_error`` is set when the process
    could not be created, otherwise ``exit_status`` holds its status.
    """

    argv: tuple[str, ...]
    exit_status: int | None = None
    stdout: str = ""
    stderr: str = ""
    spawn_error: str | None = None

    @property
    def spawned(self) -> bool:
        return self.spawn_error is None

    @property
    def ok(self) -> bool:
        return self.spawned and self.exit_status == 0

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)

    def error(self) -> SpawnFailure | NonZeroExit | None:
        """Describe the failure as an exception instance, without raising it."""
        if not self.spawned:
            return SpawnFailure(
                f"Failed to spawn: {self.spawn_error}",
                command=self.command_line,
            )
        if self.exit_status != 0:
            return NonZeroExit(
                command=self.command_line,
                returncode=self.exit_status,
                stderr=self.stderr,
            )
        return None


# =============================================================================
# UI Projection Models
# =============================================================================


@dataclass(frozen=True)
class InfoLabels:
    """Informational values shown for a running container."""

    address: str = ""
    vendor: str = ""
    version: str = ""


@dataclass(frozen=True)
class ControlFlags:
    """Enablement of every control the UI projection exposes."""

    session_toggle: bool = False
    uevent_toggle: bool = False
    app_selector: bool = False
    launch_app: bool = False
    remove_app: bool = False
    install_app: bool = False
    show_ui: bool = False
    refresh: bool = False
    factory_reset: bool = False
    image_selector: bool = False
    install_image: bool = False
    install_runtime: bool = False

    @classmethod
    def not_installed(cls) -> ControlFlags:
        """Only the runtime installer is usable."""
        return cls(install_runtime=True)

    @classmethod
    def stopped(cls, *, install_image: bool = False) -> ControlFlags:
        """Session off: session switch, reset and image controls usable."""
        return cls(
            session_toggle=True,
            factory_reset=True,
            image_selector=True,
            install_image=install_image,
        )

    @classmethod
    def starting(cls) -> ControlFlags:
        """Everything locked while the container boots."""
        return cls()

    @classmethod
    def running(cls) -> ControlFlags:
        """Session on: app controls usable, reset and image controls locked."""
        return cls(
            session_toggle=True,
            uevent_toggle=True,
            app_selector=True,
            launch_app=True,
            remove_app=True,
            install_app=True,
            show_ui=True,
            refresh=True,
        )

    def with_app_controls(self, enabled: bool) -> ControlFlags:
        """Return a copy with the app-list related controls set."""
        return replace(
            self,
            app_selector=enabled,
            remove_app=enabled,
            install_app=enabled,
            refresh=enabled,
        )


@dataclass(frozen=True)
class HostProbe:
    """What the start-up probe learned about the host."""

    runtime_installed: bool
    session_running: bool = False
    image_state: ImagePackageState = ImagePackageState.NONE
    uevent_enabled: bool | None = None


# =============================================================================
# Configuration Models
# =============================================================================


@dataclass
class ControllerSettings:
    """Timing and concurrency settings.

    The delays are empirical; the container tool offers no completion
    signal for session readiness, app removal or data removal.
    """

    ready_marker: str = "Android with user 0 is ready"
    start_timeout_seconds: float = 15.0
    post_start_app_list_delay_seconds: float = 5.0
    remove_settle_seconds: float = 5.0
    factory_reset_cooldown_seconds: float = 15.0
    worker_threads: int = 8


@dataclass
class CommandSettings:
    """Names and paths of the external collaborators."""

    waydroid: str = "waydroid"
    runtime_binary: str = "/usr/bin/waydroid"
    privilege_helper: str = "pkexec"
    terminal: str = "x-terminal-emulator"
    package_manager: str = "pacman"
    vanilla_package: str = "waydroid-image"
    gapps_package: str = "waydroid-image-gapps"
    runtime_packages: list[str] = field(
        default_factory=lambda: ["waydroid", "binder_linux-dkms"]
    )
    images_dir: str = "/var/lib/waydroid/images"
    container_config: str = "/var/lib/waydroid/waydroid.cfg"
    user_data_dir: str = "$HOME/.local/share/waydroid"
    uevent_property: str = "persist.waydroid.uevent"
    version_property: str = "ro.lineage.display.version"


@dataclass
class ControllerConfig:
    """Complete controller configuration."""

    settings: ControllerSettings = field(default_factory=ControllerSettings)
    commands: CommandSettings = field(default_factory=CommandSettings)


# =============================================================================
# Serialization Helpers
# =============================================================================


def load_config_from_dict(data: dict) -> ControllerConfig:
    """Load ControllerConfig from a dictionary (parsed JSON)."""
    return dacite.from_dict(
        data_class=ControllerConfig,
        data=data,
        config=dacite.Config(cast=[float]),
    )


def config_to_dict(config: ControllerConfig) -> dict:
    """Convert ControllerConfig to a JSON-compatible dictionary."""
    return json.loads(json.dumps(asdict(config)))
