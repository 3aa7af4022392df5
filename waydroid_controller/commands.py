"""Argument vectors for waydroid, the package manager and the privilege helper.

Nothing here runs a process; ``WaydroidCommands`` only builds argv tuples
from the configured command names so the coordinator and the tests agree on
exactly what would be executed.
"""

from __future__ import annotations

import os
import shlex
from pathlib import PurePosixPath

from waydroid_controller.models import CommandSettings, ImagePackageState

Argv = tuple[str, ...]


class WaydroidCommands:
    """Builds argv tuples for every external operation.

    Attributes:
        settings: Command names and paths in use.
    """

    def __init__(self, settings: CommandSettings | None = None) -> None:
        self.settings = settings or CommandSettings()

    # =========================================================================
    # Container tool
    # =========================================================================

    def status(self) -> Argv:
        return (self.settings.waydroid, "status")

    def prop_get(self, key: str) -> Argv:
        return (self.settings.waydroid, "prop", "get", key)

    def prop_set(self, key: str, value: str) -> Argv:
        return (self.settings.waydroid, "prop", "set", key, value)

    def uevent_get(self) -> Argv:
        return self.prop_get(self.settings.uevent_property)

    def uevent_set(self, enabled: bool) -> Argv:
        return self.prop_set(self.settings.uevent_property, "true" if enabled else "false")

    def version_get(self) -> Argv:
        return self.prop_get(self.settings.version_property)

    def session_start(self) -> Argv:
        return (self.settings.waydroid, "session", "start")

    def session_stop(self) -> Argv:
        return (self.settings.waydroid, "session", "stop")

    def app_list(self) -> Argv:
        return (self.settings.waydroid, "app", "list")

    def app_install(self, apk_path: str) -> Argv:
        return (self.settings.waydroid, "app", "install", apk_path.strip())

    def app_remove(self, package: str) -> Argv:
        return (self.settings.waydroid, "app", "remove", package.strip())

    def app_launch(self, package: str) -> Argv:
        return (self.settings.waydroid, "app", "launch", package.strip())

    def show_full_ui(self) -> Argv:
        return (self.settings.waydroid, "show-full-ui")

    # =========================================================================
    # Host package manager
    # =========================================================================

    def installed_packages(self) -> Argv:
        """Explicitly installed packages, one ``name version`` per line."""
        return (self.settings.package_manager, "-Qe")

    def image_package(self, variant: ImagePackageState) -> str:
        if variant is ImagePackageState.GAPPS:
            return self.settings.gapps_package
        if variant is ImagePackageState.VANILLA:
            return self.settings.vanilla_package
        raise ValueError(f"No package for image variant {variant.value}")

    # =========================================================================
    # Privileged operations
    # =========================================================================

    def _in_terminal(self, script: str, uid: int) -> Argv:
        """Run ``script`` as root inside a terminal the user can watch."""
        return (
            self.settings.privilege_helper,
            "env",
            f"XDG_RUNTIME_DIR=/run/user/{uid}",
            self.settings.terminal,
            "-e",
            script,
        )

    def install_runtime(self, uid: int | None = None) -> Argv:
        pm = self.settings.package_manager
        packages = " ".join(shlex.quote(p) for p in self.settings.runtime_packages)
        script = " && ".join(
            [
                f"{pm} -S chaotic-aur --noconfirm",
                "chaotic-install",
                f"{pm} -Syy",
                f"{pm} -S {packages} --noconfirm",
                "systemctl enable --now waydroid-container",
            ]
        )
        return self._in_terminal(script, os.getuid() if uid is None else uid)

    def install_image(self, variant: ImagePackageState, uid: int | None = None) -> Argv:
        """Replace the installed images with ``variant`` and re-init the container."""
        pm = self.settings.package_manager
        images = PurePosixPath(self.settings.images_dir)
        script = " && ".join(
            [
                f"{pm} -Syy",
                f"rm -f {shlex.quote(str(images / 'vendor.img'))}",
                f"rm -f {shlex.quote(str(images / 'system.img'))}",
                f"rm -f {shlex.quote(self.settings.container_config)}",
                f"{pm} -S {shlex.quote(self.image_package(variant))} --noconfirm",
                f"{self.settings.waydroid} init -f",
            ]
        )
        return self._in_terminal(script, os.getuid() if uid is None else uid)

    def factory_reset(self, home: str | None = None) -> Argv:
        """Remove the user's container data; HOME is passed explicitly to the helper."""
        home_dir = home if home is not None else os.path.expanduser("~")
        return (
            self.settings.privilege_helper,
            "env",
            f"HOME={home_dir}",
            "/bin/sh",
            "-c",
            f"rm -rf {self.settings.user_data_dir}",
        )
