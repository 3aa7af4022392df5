"""Tests for data models."""

import dacite
import pytest

from waydroid_controller.exceptions import NonZeroExit, SpawnFailure
from waydroid_controller.models import (
    PROTECTED_PACKAGES,
    AppEntry,
    CommandResult,
    ControlFlags,
    ControllerConfig,
    ImagePackageState,
    OperationKind,
    PendingOperation,
    SessionState,
    config_to_dict,
    load_config_from_dict,
)


class TestEnums:
    """Tests for lifecycle enums."""

    def test_session_state_values(self):
        assert [s.value for s in SessionState] == [
            "not_installed",
            "stopped",
            "starting",
            "running",
        ]

    def test_image_other(self):
        assert ImagePackageState.VANILLA.other is ImagePackageState.GAPPS
        assert ImagePackageState.GAPPS.other is ImagePackageState.VANILLA
        assert ImagePackageState.NONE.other is ImagePackageState.NONE

    def test_pending_operation_str(self):
        op = PendingOperation(kind=OperationKind.FACTORY_RESET, id=4)
        assert str(op) == "factory_reset#4"

    def test_pending_operation_equality(self):
        assert PendingOperation(OperationKind.ENABLE, 1) == PendingOperation(OperationKind.ENABLE, 1)
        assert PendingOperation(OperationKind.ENABLE, 1) != PendingOperation(OperationKind.ENABLE, 2)


class TestProtectedPackages:
    """Tests for the protected package set."""

    def test_contains_system_apps(self):
        assert "com.android.settings" in PROTECTED_PACKAGES
        assert "com.android.documentsui" in PROTECTED_PACKAGES
        assert len(PROTECTED_PACKAGES) == 12

    def test_user_app_not_protected(self):
        assert "org.mozilla.firefox" not in PROTECTED_PACKAGES


class TestCommandResult:
    """Tests for CommandResult."""

    def test_ok(self):
        result = CommandResult(argv=("waydroid", "status"), exit_status=0, stdout="x")
        assert result.spawned
        assert result.ok
        assert result.error() is None

    def test_non_zero(self):
        result = CommandResult(argv=("waydroid", "status"), exit_status=3, stderr="err")
        assert result.spawned
        assert not result.ok
        error = result.error()
        assert isinstance(error, NonZeroExit)
        assert error.returncode == 3
        assert error.context["command"] == "waydroid status"

    def test_spawn_failure(self):
        result = CommandResult(argv=("nope",), spawn_error="No such file or directory")
        assert not result.spawned
        assert not result.ok
        error = result.error()
        assert isinstance(error, SpawnFailure)
        assert "No such file" in str(error)

    def test_command_line_quotes(self):
        result = CommandResult(argv=("waydroid", "app", "install", "/tmp/my app.apk"))
        assert result.command_line == "waydroid app install '/tmp/my app.apk'"


class TestControlFlags:
    """Tests for ControlFlags layouts."""

    def test_not_installed(self):
        flags = ControlFlags.not_installed()
        assert flags.install_runtime
        assert not flags.session_toggle
        assert not flags.launch_app

    def test_stopped(self):
        flags = ControlFlags.stopped()
        assert flags.session_toggle
        assert flags.factory_reset
        assert flags.image_selector
        assert not flags.install_image
        assert not flags.app_selector
        assert not flags.uevent_toggle
        assert ControlFlags.stopped(install_image=True).install_image

    def test_starting_locks_everything(self):
        assert ControlFlags.starting() == ControlFlags()

    def test_running(self):
        flags = ControlFlags.running()
        assert flags.session_toggle
        assert flags.uevent_toggle
        assert flags.app_selector
        assert flags.launch_app
        assert flags.remove_app
        assert flags.install_app
        assert flags.show_ui
        assert flags.refresh
        assert not flags.factory_reset
        assert not flags.install_image
        assert not flags.install_runtime

    def test_with_app_controls(self):
        flags = ControlFlags.running().with_app_controls(False)
        assert not flags.app_selector
        assert not flags.remove_app
        assert not flags.install_app
        assert not flags.refresh
        assert flags.session_toggle
        assert flags.with_app_controls(True) == ControlFlags.running()


class TestAppEntry:
    """Tests for AppEntry."""

    def test_frozen(self):
        entry = AppEntry("Files", "com.android.documentsui")
        with pytest.raises(AttributeError):
            entry.display_name = "Other"  # type: ignore[misc]


class TestConfigSerialization:
    """Tests for dacite-based config conversion."""

    def test_defaults_from_empty_dict(self):
        assert load_config_from_dict({}) == ControllerConfig()

    def test_round_trip(self):
        config = ControllerConfig()
        config.commands.package_manager = "yay"
        assert load_config_from_dict(config_to_dict(config)) == config

    def test_int_cast_to_float(self):
        config = load_config_from_dict({"settings": {"remove_settle_seconds": 2}})
        assert config.settings.remove_settle_seconds == 2.0
        assert isinstance(config.settings.remove_settle_seconds, float)

    def test_wrong_type_raises(self):
        with pytest.raises(dacite.DaciteError):
            load_config_from_dict({"commands": {"runtime_packages": "waydroid"}})
