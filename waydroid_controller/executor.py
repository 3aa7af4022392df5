"""External command execution for the controller.

Provides three ways to run a command:

- ``run()``: blocking, on the calling thread. Reserved for short probes
  issued from workers and for the few calls the control thread is allowed
  to wait on (session stop, property toggle).
- ``run_background()`` / ``submit()``: on a worker thread; the result is
  delivered through the ResultMailbox.
- ``stream()``: on a dedicated watcher thread that reads stdout line by
  line and stops at the first line accepted by a caller-supplied predicate.

Failures are never raised to the caller. A command that cannot be spawned
or exits non-zero produces a CommandResult describing it. Output is decoded
as UTF-8 with undecodable bytes replaced.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import IO, Any, Callable, Protocol, Sequence, TypeVar

from waydroid_controller.exceptions import record_error
from waydroid_controller.logging_config import log_exception
from waydroid_controller.mailbox import ResultMailbox
from waydroid_controller.models import CommandResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Lines kept from a stream that ended without a match, for diagnostics
STREAM_TAIL_LINES = 20


class StreamProcess(Protocol):
    """The subset of Popen the stream watcher relies on."""

    stdout: IO[str] | None

    def wait(self) -> int: ...


class CommandExecutor:
    """Runs external commands and hands results to the mailbox.

    Attributes:
        mailbox: Where background results are delivered.
    """

    def __init__(self, mailbox: ResultMailbox, *, max_workers: int = 8) -> None:
        """Initialize the executor.

        Args:
            mailbox: Mailbox bound to the controller's event loop.
            max_workers: Size of the worker pool for background commands.
        """
        self.mailbox = mailbox
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="waydroid-worker"
        )
        self._inflight: set[Future[Any]] = set()
        self._lock = threading.Lock()
        self._stream_counter = 0

    # =========================================================================
    # Blocking mode
    # =========================================================================

    def run(
        self, argv: Sequence[str], env: dict[str, str] | None = None
    ) -> CommandResult:
        """Run a command to completion on the calling thread.

        Args:
            argv: Program and arguments.
            env: Environment overrides merged over the current environment.

        Returns:
            CommandResult with exit status and captured output.
        """
        argv = tuple(argv)
        logger.debug("Running: %s", shlex.join(argv))
        result = self._spawn(argv, self._build_env(env))
        if not result.spawned:
            logger.warning("Could not spawn %s: %s", argv[0], result.spawn_error)
        return result

    def _spawn(
        self, argv: tuple[str, ...], env: dict[str, str] | None
    ) -> CommandResult:
        """Create the process and wait for it."""
        try:
            completed = subprocess.run(
                list(argv),
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                env=env,
                check=False,
            )
        except OSError as e:
            return CommandResult(argv=argv, spawn_error=str(e))

        return CommandResult(
            argv=argv,
            exit_status=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    @staticmethod
    def _build_env(env: dict[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        return {**os.environ, **env}

    # =========================================================================
    # Background mode
    # =========================================================================

    def submit(
        self,
        fn: Callable[[], T],
        on_result: Callable[[T], None],
        on_error: Callable[[Exception], None] | None = None,
    ) -> Future[T | None]:
        """Run ``fn`` on a worker and post ``on_result(value)`` to the mailbox.

        ``fn`` must not touch shared controller state.

        Args:
            fn: Work to run off the control thread.
            on_result: Handler run on the control thread with fn's return value.
            on_error: Handler run on the control thread if ``fn`` raises.
                Without one the failure is only logged.

        Returns:
            Future completing once a result or error has been posted.
        """

        def work() -> T | None:
            try:
                value = fn()
            except Exception as e:
                log_exception(logger, e, "Background work failed")
                record_error(e)
                if on_error is not None:
                    self.mailbox.post(on_error, e)
                return None
            self.mailbox.post(on_result, value)
            return value

        return self._track(self._pool.submit(work))

    def run_background(
        self,
        argv: Sequence[str],
        on_result: Callable[[CommandResult], None],
        env: dict[str, str] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> Future[CommandResult | None]:
        """Run a command on a worker; its result is posted to ``on_result``."""
        argv = tuple(argv)
        return self.submit(lambda: self.run(argv, env), on_result, on_error)

    # =========================================================================
    # Streaming mode
    # =========================================================================

    def stream(
        self,
        argv: Sequence[str],
        match: Callable[[str], bool],
        on_match: Callable[[str], None],
        on_exit: Callable[[CommandResult], None] | None = None,
        env: dict[str, str] | None = None,
    ) -> Future[str | None]:
        """Watch a command's output for the first line accepted by ``match``.

        On a match the pipe is closed, the watch ends and ``on_match(line)``
        is posted. If output ends without a match, ``on_exit(result)`` is
        posted once the process exits. A spawn failure is reported through
        ``on_exit`` too.

        Returns:
            Future resolving to the matched line (or None) when the watch ends.
        """
        argv = tuple(argv)
        future: Future[str | None] = Future()
        self._stream_counter += 1
        thread = threading.Thread(
            target=self._watch,
            args=(argv, self._build_env(env), match, on_match, on_exit, future),
            name=f"waydroid-stream-{self._stream_counter}",
            daemon=True,
        )
        self._track(future)
        thread.start()
        return future

    def _open_stream(
        self, argv: tuple[str, ...], env: dict[str, str] | None
    ) -> StreamProcess:
        """Start a process whose merged stdout/stderr can be read line by line."""
        return subprocess.Popen(
            list(argv),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            env=env,
        )

    def _watch(
        self,
        argv: tuple[str, ...],
        env: dict[str, str] | None,
        match: Callable[[str], bool],
        on_match: Callable[[str], None],
        on_exit: Callable[[CommandResult], None] | None,
        future: Future[str | None],
    ) -> None:
        """Watcher thread body."""
        logger.debug("Streaming: %s", shlex.join(argv))
        try:
            process = self._open_stream(argv, env)
        except OSError as e:
            logger.warning("Could not spawn %s: %s", argv[0], e)
            if on_exit is not None:
                self.mailbox.post(on_exit, CommandResult(argv=argv, spawn_error=str(e)))
            future.set_result(None)
            return

        try:
            self._read_until_match(process, argv, match, on_match, on_exit, future)
        finally:
            # Resolve even if the watch died so drain() never hangs
            if not future.done():
                future.set_result(None)

    def _read_until_match(
        self,
        process: StreamProcess,
        argv: tuple[str, ...],
        match: Callable[[str], bool],
        on_match: Callable[[str], None],
        on_exit: Callable[[CommandResult], None] | None,
        future: Future[str | None],
    ) -> None:
        matched: str | None = None
        tail: list[str] = []
        stdout = process.stdout
        try:
            if stdout is not None:
                for raw in stdout:
                    line = raw.rstrip("\n")
                    if match(line):
                        matched = line
                        break
                    tail.append(line)
                    del tail[:-STREAM_TAIL_LINES]
        except (OSError, ValueError) as e:
            logger.debug("Stream for %s ended: %s", argv[0], e)
        except Exception as e:
            log_exception(logger, e, f"Watching {argv[0]} output failed")
            record_error(e)
        finally:
            if stdout is not None:
                stdout.close()

        if matched is not None:
            self.mailbox.post(on_match, matched)
            future.set_result(matched)
            # Child keeps running; reap it whenever it exits
            status = process.wait()
            logger.debug("%s exited with %s after match", argv[0], status)
            return

        status = process.wait()
        logger.debug("%s exited with %s without match", argv[0], status)
        if on_exit is not None:
            self.mailbox.post(
                on_exit,
                CommandResult(argv=argv, exit_status=status, stdout="\n".join(tail)),
            )

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    def _track(self, future: Future[T]) -> Future[T]:
        with self._lock:
            self._inflight.add(future)
        future.add_done_callback(self._forget)
        return future

    def _forget(self, future: Future[Any]) -> None:
        with self._lock:
            self._inflight.discard(future)
        if not future.cancelled() and future.exception() is not None:
            log_exception(logger, future.exception(), "Background work failed")

    @property
    def inflight(self) -> int:
        """Number of worker jobs and stream watches still running."""
        with self._lock:
            return sum(1 for f in self._inflight if not f.done())

    async def drain(self) -> None:
        """Wait until all workers finished and all their results were handled.

        Handlers may dispatch further work; that is waited for as well.
        Timers armed by handlers are not waited for.
        """
        while True:
            with self._lock:
                running = [f for f in self._inflight if not f.done()]
            if running:
                await asyncio.wait([asyncio.wrap_future(f) for f in running])
            elif self.mailbox.pending:
                await self.mailbox.join()
            else:
                return

    def shutdown(self) -> None:
        """Stop accepting work. Running commands are left to finish."""
        self.mailbox.close()
        self._pool.shutdown(wait=False, cancel_futures=True)
