"""Entry point for python -m waydroid_controller.

Supports both TUI mode (default) and a headless status command.

Usage:
    # Launch TUI
    python -m waydroid_controller

    # Print container state (headless)
    python -m waydroid_controller status
    python -m waydroid_controller status --json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from waydroid_controller.exceptions import ConfigError


def _setup_logging(args: argparse.Namespace) -> None:
    """Configure logging based on command-line arguments."""
    from waydroid_controller.logging_config import enable_debug_mode, setup_logging

    if args.debug:
        enable_debug_mode()
    else:
        setup_logging(
            level=args.log_level,
            log_to_console=False,
            log_to_file=not args.no_log_file,
        )


def _print_json(data: Any) -> None:
    """Print data as JSON to stdout."""
    print(json.dumps(data, indent=2, default=str))


def _print_table(rows: list[dict[str, Any]], columns: list[str]) -> None:
    """Print data as a simple table."""
    if not rows:
        print("No results.")
        return

    widths = {col: len(col) for col in columns}
    for row in rows:
        for col in columns:
            widths[col] = max(widths[col], len(str(row.get(col, ""))))

    header = "  ".join(col.ljust(widths[col]) for col in columns)
    print(header)
    print("-" * len(header))

    for row in rows:
        print("  ".join(str(row.get(col, "")).ljust(widths[col]) for col in columns))


# =============================================================================
# CLI Command Handlers
# =============================================================================


async def collect_status(config: Any, executor_factory: Any = None) -> dict[str, Any]:
    """Probe the host without a UI and return the resulting snapshot.

    Args:
        config: ControllerConfig to use.
        executor_factory: Builds the executor from the mailbox (tests).

    Returns:
        ``StateSnapshot.to_dict()`` after every dispatched probe finished.
    """
    from waydroid_controller.coordinator import OperationCoordinator
    from waydroid_controller.executor import CommandExecutor
    from waydroid_controller.mailbox import ResultMailbox

    mailbox = ResultMailbox.for_running_loop()
    if executor_factory is None:
        executor = CommandExecutor(mailbox, max_workers=config.settings.worker_threads)
    else:
        executor = executor_factory(mailbox)

    coordinator = OperationCoordinator(executor, config=config)
    try:
        coordinator.initialize()
        await coordinator.wait_idle()
        return coordinator.state.to_snapshot().to_dict()
    finally:
        coordinator.shutdown()


async def cmd_status(args: argparse.Namespace, config: Any) -> int:
    """Handle status command."""
    status = await collect_status(config)

    if args.json:
        _print_json(status)
        return 0

    info = status["info"]
    _print_table(
        [
            {"Field": "Session", "Value": status["session_state"]},
            {"Field": "Image", "Value": status["image_state"]},
            {"Field": "Hotplug (uevent)", "Value": status["toggles"]["uevent"]},
            {"Field": "IP address", "Value": info["address"] or "-"},
            {"Field": "Vendor", "Value": info["vendor"] or "-"},
            {"Field": "Version", "Value": info["version"] or "-"},
        ],
        ["Field", "Value"],
    )

    if status["apps"]:
        print()
        _print_table(
            [
                {"Name": app["display_name"], "Package": app["package_name"]}
                for app in status["apps"]
            ],
            ["Name", "Package"],
        )
    return 0


# =============================================================================
# Argument Parser Setup
# =============================================================================


def _create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Waydroid Controller - control panel for the Waydroid container",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Launch the TUI panel
  python -m waydroid_controller

  # Show container state
  python -m waydroid_controller status --json
""",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging to console",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set log level (default: INFO)",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Disable logging to file",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config.json (default: ~/.config/waydroid-controller/config.json)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    status_parser = subparsers.add_parser(
        "status",
        help="Probe the host and print container state",
    )
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    _setup_logging(args)

    from waydroid_controller.config import load_config

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.command == "status":
        return asyncio.run(cmd_status(args, config))

    from waydroid_controller.app import WaydroidPanelApp

    app = WaydroidPanelApp(config=config)
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
