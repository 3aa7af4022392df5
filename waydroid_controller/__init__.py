"""Waydroid control panel.

A Textual control surface for a single Waydroid container: start and stop
the Android session, inspect it, manage guest apps, swap the system image,
reset user data and install the runtime. External tools do the real work;
this package sequences them around the container's lifecycle.

Public API Usage:
    # Headless use of the coordinator
    from waydroid_controller import (
        CommandExecutor,
        OperationCoordinator,
        ResultMailbox,
    )

    async def main():
        executor = CommandExecutor(ResultMailbox.for_running_loop())
        coordinator = OperationCoordinator(executor)
        coordinator.initialize()
        await coordinator.wait_idle()
        print(coordinator.state.to_snapshot().to_dict())
        coordinator.shutdown()

    # Configuration access
    from waydroid_controller import load_config, save_config
"""

__version__ = "0.1.0"

from waydroid_controller.commands import WaydroidCommands
from waydroid_controller.config import load_config, save_config
from waydroid_controller.coordinator import OperationCoordinator
from waydroid_controller.exceptions import (
    CommandError,
    ConfigError,
    NonZeroExit,
    ParseFailure,
    SpawnFailure,
    StateConflict,
    WaydroidControllerError,
)
from waydroid_controller.executor import CommandExecutor
from waydroid_controller.mailbox import ResultMailbox
from waydroid_controller.models import (
    AppEntry,
    CommandResult,
    ControlFlags,
    ControllerConfig,
    ImagePackageState,
    InfoLabels,
    OperationKind,
    PendingOperation,
    SessionState,
)
from waydroid_controller.ports import NullProjection, UiProjection
from waydroid_controller.state import ControllerState, StateSnapshot

__all__ = [
    "__version__",
    # Orchestration
    "OperationCoordinator",
    "CommandExecutor",
    "ResultMailbox",
    "WaydroidCommands",
    # State
    "ControllerState",
    "StateSnapshot",
    # Models
    "AppEntry",
    "CommandResult",
    "ControlFlags",
    "ControllerConfig",
    "ImagePackageState",
    "InfoLabels",
    "OperationKind",
    "PendingOperation",
    "SessionState",
    # UI contract
    "UiProjection",
    "NullProjection",
    # Configuration
    "load_config",
    "save_config",
    # Exceptions
    "WaydroidControllerError",
    "CommandError",
    "SpawnFailure",
    "NonZeroExit",
    "ParseFailure",
    "StateConflict",
    "ConfigError",
]
