"""Tests for command output parsers."""

import pytest

from waydroid_controller.exceptions import ParseFailure
from waydroid_controller.models import AppEntry, ImagePackageState
from waydroid_controller.parsers import (
    find_package,
    parse_address,
    parse_app_list,
    parse_image_state,
    parse_prop_bool,
    parse_session_running,
    parse_status,
    parse_vendor,
    parse_version,
    status_field,
)

RUNNING_STATUS = (
    "Session:\tRUNNING\n"
    "Container:\tRUNNING\n"
    "Vendor type:\tMAINLINE\n"
    "IP address:\t192.168.240.112\n"
    "Session user:\tuser(1000)\n"
    "Wayland display:\twayland-0\n"
)

STOPPED_STATUS = "Session:\tSTOPPED\nVendor type:\tMAINLINE\n"

APP_LIST = """Name: Settings
packageName: com.android.settings
categories:
\tandroid.intent.category.LAUNCHER

Name: Firefox
packageName: org.mozilla.firefox
categories:
\tandroid.intent.category.LAUNCHER
"""


class TestParseStatus:
    """Tests for waydroid status parsing."""

    def test_tab_delimited(self):
        fields = parse_status(RUNNING_STATUS)
        assert fields["Session"] == "RUNNING"
        assert fields["IP address"] == "192.168.240.112"
        assert fields["Vendor type"] == "MAINLINE"

    def test_colon_delimited(self):
        fields = parse_status("Session: RUNNING\nIP address: 10.0.0.2\n")
        assert fields["Session"] == "RUNNING"
        assert fields["IP address"] == "10.0.0.2"

    def test_first_occurrence_wins(self):
        fields = parse_status("Session:\tRUNNING\nSession:\tSTOPPED\n")
        assert fields["Session"] == "RUNNING"

    def test_ignores_noise(self):
        assert parse_status("\n[gbinder] Service manager\n\n") == {}

    def test_status_field_missing(self):
        with pytest.raises(ParseFailure) as exc_info:
            status_field(STOPPED_STATUS, "IP")
        assert exc_info.value.context["field"] == "IP"

    def test_status_field_empty_value(self):
        with pytest.raises(ParseFailure):
            status_field("IP address:\t\n", "IP")


class TestStatusHelpers:
    """Tests for the per-field status helpers."""

    def test_session_running(self):
        assert parse_session_running(RUNNING_STATUS) is True
        assert parse_session_running(STOPPED_STATUS) is False
        assert parse_session_running("") is False

    def test_address(self):
        assert parse_address(RUNNING_STATUS) == "192.168.240.112"

    def test_vendor(self):
        assert parse_vendor(RUNNING_STATUS) == "MAINLINE"

    def test_address_missing(self):
        with pytest.raises(ParseFailure):
            parse_address(STOPPED_STATUS)


class TestParseVersion:
    """Tests for version shortening."""

    def test_first_two_parts(self):
        assert parse_version("18.1-20230128-VANILLA-waydroid_x86_64\n") == "18.1-20230128"

    def test_exactly_two_parts(self):
        assert parse_version("18.1-20230128") == "18.1-20230128"

    def test_uses_last_line(self):
        output = "[gbinder] Service manager /dev/binder has appeared\n18.1-20230128-GAPPS\n"
        assert parse_version(output) == "18.1-20230128"

    @pytest.mark.parametrize("output", ["", "   \n", "18.1", "-2023", "18.1-"])
    def test_malformed(self, output):
        with pytest.raises(ParseFailure):
            parse_version(output)


class TestParsePropBool:
    """Tests for property booleans."""

    @pytest.mark.parametrize(
        "output,expected",
        [("true\n", True), ("True", True), ("false\n", False), ("", False), ("1", False)],
    )
    def test_values(self, output, expected):
        assert parse_prop_bool(output) is expected


class TestParseAppList:
    """Tests for app list parsing."""

    def test_entries_in_order(self):
        assert parse_app_list(APP_LIST) == [
            AppEntry("Settings", "com.android.settings"),
            AppEntry("Firefox", "org.mozilla.firefox"),
        ]

    def test_name_with_spaces(self):
        output = "Name: F-Droid Basic\npackageName: org.fdroid.basic\n"
        assert parse_app_list(output) == [AppEntry("F-Droid Basic", "org.fdroid.basic")]

    def test_incomplete_entry_skipped(self):
        output = "Name: Orphan\nName: Files\npackageName: com.android.documentsui\n"
        assert parse_app_list(output) == [AppEntry("Files", "com.android.documentsui")]

    def test_package_without_name_skipped(self):
        output = "packageName: com.example.lost\nName: Files\npackageName: com.android.documentsui\n"
        assert parse_app_list(output) == [AppEntry("Files", "com.android.documentsui")]

    @pytest.mark.parametrize("output", ["", "WayDroid session is stopped\n", "Name: Half\n"])
    def test_empty_raises(self, output):
        with pytest.raises(ParseFailure):
            parse_app_list(output)


class TestFindPackage:
    """Tests for display name resolution."""

    def test_first_match(self):
        entries = [
            AppEntry("Clock", "com.android.deskclock"),
            AppEntry("Clock", "com.example.clock"),
        ]
        assert find_package(entries, "Clock") == "com.android.deskclock"

    def test_no_match(self):
        assert find_package([AppEntry("Files", "com.android.documentsui")], "files") is None


class TestParseImageState:
    """Tests for installed image detection."""

    def _parse(self, output):
        return parse_image_state(
            output,
            vanilla_package="waydroid-image",
            gapps_package="waydroid-image-gapps",
        )

    def test_vanilla(self):
        assert self._parse("base 3-2\nwaydroid-image 18.1-1\n") is ImagePackageState.VANILLA

    def test_gapps(self):
        assert self._parse("waydroid-image-gapps 18.1-1\n") is ImagePackageState.GAPPS

    def test_gapps_wins_when_both(self):
        output = "waydroid-image 18.1-1\nwaydroid-image-gapps 18.1-1\n"
        assert self._parse(output) is ImagePackageState.GAPPS

    def test_none(self):
        assert self._parse("waydroid 1.4.2-1\n") is ImagePackageState.NONE
        assert self._parse("") is ImagePackageState.NONE

    def test_exact_name_match(self):
        assert self._parse("waydroid-image-extras 1-1\n") is ImagePackageState.NONE
