"""Custom widgets for the Waydroid panel."""

from waydroid_controller.widgets.session_status import SessionStatusWidget

__all__ = ["SessionStatusWidget"]
