"""Testing utilities for waydroid_controller.

This package provides a scripted command executor and a recording UI
projection, so the coordinator can be exercised without Waydroid, a
package manager or a terminal being present.
"""

from waydroid_controller.testing.fakes import (
    FakeCall,
    FakeCommandExecutor,
    FakeStreamProcess,
    RecordingProjection,
    ScriptedResponse,
)

__all__ = [
    "FakeCommandExecutor",
    "FakeCall",
    "FakeStreamProcess",
    "ScriptedResponse",
    "RecordingProjection",
]
