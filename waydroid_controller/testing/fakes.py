"""Scripted fakes for testing the coordinator.

Example usage in tests:
    from waydroid_controller.testing import FakeCommandExecutor, RecordingProjection

    async def test_enable():
        executor = FakeCommandExecutor(ResultMailbox.for_running_loop())
        executor.set_stream(("waydroid", "session", "start"), ["Android with user 0 is ready"])
        projection = RecordingProjection()
        coordinator = OperationCoordinator(executor, projection)
        ...
        await executor.drain()
        assert projection.toggles["session"] is True

Commands run through the real worker pool, stream threads and mailbox, so
threading behaviour is the same as in production; only process creation is
replaced.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from waydroid_controller.executor import CommandExecutor
from waydroid_controller.mailbox import ResultMailbox
from waydroid_controller.models import AppEntry, CommandResult, ControlFlags


@dataclass
class ScriptedResponse:
    """What a faked command returns."""

    stdout: str = ""
    stderr: str = ""
    exit_status: int = 0
    spawn_error: str | None = None
    delay: float = 0.0
    # Raised from the worker instead of returning a result
    raises: Exception | None = None


@dataclass
class StreamScript:
    """What a faked streaming command prints."""

    lines: list[str] = field(default_factory=list)
    exit_status: int = 0
    spawn_error: str | None = None
    delay: float = 0.0
    hold: bool = False


@dataclass
class FakeCall:
    """One recorded command invocation."""

    argv: tuple[str, ...]
    mode: str  # "run" or "stream"
    thread_name: str


class _ScriptedOutput:
    """Line iterator standing in for a process's stdout pipe."""

    def __init__(
        self, lines: Sequence[str], delay: float, release: threading.Event | None
    ) -> None:
        self._lines = list(lines)
        self._delay = delay
        self._release = release
        self.closed = False

    def __iter__(self) -> Iterator[str]:
        if self._delay:
            time.sleep(self._delay)
        for line in self._lines:
            if self.closed:
                return
            yield line + "\n"
        if self._release is not None:
            self._release.wait()

    def close(self) -> None:
        self.closed = True


class FakeStreamProcess:
    """Minimal Popen replacement for streamed commands."""

    def __init__(
        self,
        lines: Sequence[str],
        exit_status: int = 0,
        delay: float = 0.0,
        release: threading.Event | None = None,
    ) -> None:
        self.stdout = _ScriptedOutput(lines, delay, release)
        self.exit_status = exit_status

    def wait(self) -> int:
        return self.exit_status


class FakeCommandExecutor(CommandExecutor):
    """CommandExecutor whose processes are scripted per argv.

    Commands without a scripted response succeed with empty output.
    """

    def __init__(self, mailbox: ResultMailbox, *, max_workers: int = 4) -> None:
        super().__init__(mailbox, max_workers=max_workers)
        self.responses: dict[tuple[str, ...], ScriptedResponse] = {}
        self.streams: dict[tuple[str, ...], StreamScript] = {}
        self.calls: list[FakeCall] = []
        self._queued: dict[tuple[str, ...], list[ScriptedResponse]] = {}
        self._calls_lock = threading.Lock()
        self._release = threading.Event()

    # Test helpers
    def set_response(
        self,
        argv: Sequence[str],
        stdout: str = "",
        *,
        stderr: str = "",
        exit_status: int = 0,
        spawn_error: str | None = None,
        delay: float = 0.0,
        raises: Exception | None = None,
    ) -> None:
        """Script the result of every run of ``argv``."""
        self.responses[tuple(argv)] = ScriptedResponse(
            stdout, stderr, exit_status, spawn_error, delay, raises
        )

    def queue_response(
        self,
        argv: Sequence[str],
        stdout: str = "",
        *,
        stderr: str = "",
        exit_status: int = 0,
        spawn_error: str | None = None,
        delay: float = 0.0,
        raises: Exception | None = None,
    ) -> None:
        """Script a one-shot result, used before any set_response() result."""
        self._queued.setdefault(tuple(argv), []).append(
            ScriptedResponse(stdout, stderr, exit_status, spawn_error, delay, raises)
        )

    def set_stream(
        self,
        argv: Sequence[str],
        lines: Sequence[str],
        *,
        exit_status: int = 0,
        spawn_error: str | None = None,
        delay: float = 0.0,
        hold: bool = False,
    ) -> None:
        """Script a streamed command.

        Args:
            argv: Command to script.
            lines: Output lines, without newlines.
            exit_status: Status reported once output ends.
            spawn_error: If set, the process cannot be created.
            delay: Seconds to wait before the first line.
            hold: Keep the pipe open after the last line until
                release_streams() is called.
        """
        self.streams[tuple(argv)] = StreamScript(
            list(lines), exit_status, spawn_error, delay, hold
        )

    def release_streams(self) -> None:
        """Let held streams reach end of output."""
        self._release.set()

    def calls_for(self, argv: Sequence[str]) -> list[FakeCall]:
        argv = tuple(argv)
        with self._calls_lock:
            return [call for call in self.calls if call.argv == argv]

    def was_called(self, argv: Sequence[str]) -> bool:
        return bool(self.calls_for(argv))

    @property
    def commands(self) -> list[tuple[str, ...]]:
        with self._calls_lock:
            return [call.argv for call in self.calls]

    # Overrides
    def _record(self, argv: tuple[str, ...], mode: str) -> None:
        with self._calls_lock:
            self.calls.append(FakeCall(argv, mode, threading.current_thread().name))

    def _spawn(
        self, argv: tuple[str, ...], env: dict[str, str] | None
    ) -> CommandResult:
        self._record(argv, "run")
        queued = self._queued.get(argv)
        if queued:
            response = queued.pop(0)
        else:
            response = self.responses.get(argv, ScriptedResponse())

        if response.delay:
            time.sleep(response.delay)
        if response.raises is not None:
            raise response.raises
        if response.spawn_error is not None:
            return CommandResult(argv=argv, spawn_error=response.spawn_error)
        return CommandResult(
            argv=argv,
            exit_status=response.exit_status,
            stdout=response.stdout,
            stderr=response.stderr,
        )

    def _open_stream(
        self, argv: tuple[str, ...], env: dict[str, str] | None
    ) -> FakeStreamProcess:
        self._record(argv, "stream")
        script = self.streams.get(argv, StreamScript())
        if script.spawn_error is not None:
            raise FileNotFoundError(script.spawn_error)
        return FakeStreamProcess(
            script.lines,
            script.exit_status,
            script.delay,
            self._release if script.hold else None,
        )


class RecordingProjection:
    """UiProjection that remembers everything it was told."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self.flags_history: list[ControlFlags] = []
        self.flags: ControlFlags | None = None
        self.labels: tuple[str, str, str] = ("", "", "")
        self.apps: list[AppEntry] = []
        self.toggles: dict[str, bool] = {}
        self.thread_names: set[str] = set()

    def _record(self, method: str, *args: object) -> None:
        self.calls.append((method, args))
        self.thread_names.add(threading.current_thread().name)

    def set_enabled_controls(self, flags: ControlFlags) -> None:
        self._record("set_enabled_controls", flags)
        self.flags = flags
        self.flags_history.append(flags)

    def set_info_labels(self, address: str, vendor: str, version: str) -> None:
        self._record("set_info_labels", address, vendor, version)
        self.labels = (address, vendor, version)

    def set_app_snapshot(self, apps: list[AppEntry]) -> None:
        self._record("set_app_snapshot", list(apps))
        self.apps = list(apps)

    def set_toggle_state(self, name: str, value: bool) -> None:
        self._record("set_toggle_state", name, value)
        self.toggles[name] = value

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def clear(self) -> None:
        self.calls.clear()
        self.flags_history.clear()
