"""Parsers for the text output of waydroid and the host package manager.

The contract with these tools is plain text, so every parser here is
deliberately narrow: it looks for one marker or field and raises
ParseFailure when it is absent rather than guessing.

Example ``waydroid status`` output::

    Session:	RUNNING
    Container:	RUNNING
    Vendor type:	MAINLINE
    IP address:	192.168.240.112
    Session user:	user(1000)
    Wayland display:	wayland-0

Example ``waydroid app list`` output::

    Name: Settings
    packageName: com.android.settings
    categories:
    	android.intent.category.LAUNCHER

    Name: Files
    packageName: com.android.documentsui
"""

from __future__ import annotations

from waydroid_controller.exceptions import ParseFailure
from waydroid_controller.models import AppEntry, ImagePackageState


def parse_status(output: str) -> dict[str, str]:
    """Parse ``waydroid status`` into a key/value mapping.

    Keys keep their original spelling ("IP address", "Vendor type").
    Lines that do not split into a key and a value are ignored.
    """
    fields: dict[str, str] = {}
    for line in output.splitlines():
        line = line.rstrip()
        if not line:
            continue
        # Tab-delimited first, colon-delimited as fallback
        if "\t" in line:
            key, value = line.split("\t", 1)
        elif ":" in line:
            key, value = line.split(":", 1)
        else:
            continue
        key = key.strip().rstrip(":").strip()
        if key:
            fields.setdefault(key, value.strip())
    return fields


def status_field(output: str, marker: str) -> str:
    """Return the value of the first status key containing ``marker``.

    Raises:
        ParseFailure: If no key contains the marker or its value is empty.
    """
    for key, value in parse_status(output).items():
        if marker in key and value:
            return value
    raise ParseFailure(f"No '{marker}' field in status output", field=marker, output=output)


def parse_session_running(output: str) -> bool:
    """True when the status reports the session as RUNNING."""
    try:
        return status_field(output, "Session").startswith("RUNNING")
    except ParseFailure:
        return False


def parse_address(output: str) -> str:
    """Extract the container's IP address from status output."""
    return status_field(output, "IP")


def parse_vendor(output: str) -> str:
    """Extract the vendor type from status output."""
    return status_field(output, "Vendor")


def parse_version(output: str) -> str:
    """Shorten ``ro.lineage.display.version`` to its first two dash parts.

    ``"18.1-20230101-VANILLA-waydroid_x86_64"`` becomes ``"18.1-20230101"``.

    Raises:
        ParseFailure: If the value does not have at least two parts.
    """
    value = output.strip().splitlines()[-1].strip() if output.strip() else ""
    parts = value.split("-", 2)
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ParseFailure("Unexpected version format", field="version", output=output)
    return f"{parts[0]}-{parts[1]}"


def parse_prop_bool(output: str) -> bool:
    """Interpret a ``waydroid prop get`` value as a boolean."""
    return "true" in output.lower()


def parse_app_list(output: str) -> list[AppEntry]:
    """Parse ``waydroid app list`` into AppEntry records, in listed order.

    An entry needs both a ``Name:`` line and a following ``packageName:``
    line; incomplete entries are skipped.

    Raises:
        ParseFailure: If the output contains no complete entry.
    """
    entries: list[AppEntry] = []
    name: str | None = None

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.startswith("Name:"):
            name = stripped[len("Name:"):].strip() or None
        elif stripped.startswith("packageName:") and name is not None:
            package = stripped[len("packageName:"):].strip()
            if package:
                entries.append(AppEntry(display_name=name, package_name=package))
            name = None

    if not entries:
        raise ParseFailure("No apps in app list output", field="Name", output=output)
    return entries


def find_package(entries: list[AppEntry], display_name: str) -> str | None:
    """Return the package of the first entry named ``display_name``."""
    for entry in entries:
        if entry.display_name == display_name:
            return entry.package_name
    return None


def parse_image_state(
    output: str, *, vanilla_package: str, gapps_package: str
) -> ImagePackageState:
    """Determine the installed image variant from ``pacman -Qe`` output.

    Each line is ``<name> <version>``. GApps wins if both are listed.
    """
    installed = {line.split()[0] for line in output.splitlines() if line.strip()}
    if gapps_package in installed:
        return ImagePackageState.GAPPS
    if vanilla_package in installed:
        return ImagePackageState.VANILLA
    return ImagePackageState.NONE
