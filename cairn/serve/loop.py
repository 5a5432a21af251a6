"""
Rebuild loop: the state machine behind ``cairn serve``.

Runs an initial build, starts the server, then polls the change watcher at a
fixed interval and rebuilds synchronously on change. Builds never overlap
each other or a scan.
"""

from __future__ import annotations

import signal
import time
import webbrowser
from enum import Enum
from typing import Any, Callable, Optional

from cairn.config import SiteConfig
from cairn.core.errors import ConfigError, ProcessFailure, ServerUnreachable
from cairn.core.utils import log
from cairn.serve import supervisor as default_supervisor
from cairn.serve import watcher as default_watcher
from cairn.serve.control import ControlFiles
from cairn.serve.invoker import BuildInvoker, BuildResult
from cairn.serve.supervisor import ServerConfig, ServerHandle
from cairn.serve.watcher import ChangeSet, WatchBaseline

WATCH_INTERVAL = 1.0
READY_TIMEOUT = 10.0
READY_POLL = 0.1
ERROR_LOG_TAIL = 20


class LoopState(Enum):
    STARTING = "starting"
    BUILDING = "building"
    SERVER_UP = "server-up"
    WATCHING = "watching"
    REBUILDING = "rebuilding"
    STOPPING = "stopping"
    STOPPED = "stopped"


# =============================================================================
# Lifecycle
# =============================================================================


class Lifecycle:
    """Single idempotent teardown entry point for the serve command.

    Signal handlers only set the stop flag and call :meth:`teardown`; the
    loop notices the flag at its next check and returns.
    """

    def __init__(self, control: ControlFiles):
        self.control = control
        self.stop_requested = False
        self._torn_down = False
        self._cleanups: list[Callable[[], None]] = []
        self._previous_handlers: dict[int, Any] = {}

    @property
    def torn_down(self) -> bool:
        return self._torn_down

    def on_teardown(self, cleanup: Callable[[], None]) -> None:
        """Register a cleanup; cleanups run last-registered first."""
        self._cleanups.append(cleanup)

    def install_signal_handlers(self) -> None:
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum, frame) -> None:
        self.stop_requested = True
        self.teardown()

    def teardown(self) -> None:
        """Stop children, remove the control directory. Second call is a no-op.

        Cleanup failures are logged as warnings and never raised.
        """
        if self._torn_down:
            return
        self._torn_down = True
        self.stop_requested = True

        for cleanup in reversed(self._cleanups):
            try:
                cleanup()
            except Exception as e:
                log.warning(f"Cleanup failed: {e}")
        self._cleanups.clear()

        try:
            self.control.remove()
        except OSError as e:
            log.warning(f"Could not remove {self.control.dir}: {e}")

        log.info("")
        log.success("Server stopped.")


# =============================================================================
# Rebuild Loop
# =============================================================================


class RebuildLoop:
    """Ties the build invoker, server supervisor and change watcher together.

    Collaborators with side effects (sleep, probe, supervisor, watcher,
    configuration loader) are injectable.
    """

    def __init__(
        self,
        *,
        config: SiteConfig,
        control: ControlFiles,
        invoker: BuildInvoker,
        server: ServerConfig,
        lifecycle: Lifecycle,
        baseline_factory: Callable[[], WatchBaseline],
        load_config: Callable[[], SiteConfig],
        timeout: Optional[float] = None,
        open_browser: bool = False,
        interval: float = WATCH_INTERVAL,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[[str, int], bool] = default_supervisor.probe,
        supervisor: Any = default_supervisor,
        scan: Callable[[WatchBaseline], ChangeSet] = default_watcher.scan,
    ):
        self.config = config
        self.control = control
        self.invoker = invoker
        self.server = server
        self.lifecycle = lifecycle
        self.baseline_factory = baseline_factory
        self.load_config = load_config
        self.timeout = timeout
        self.open_browser = open_browser
        self.interval = interval
        self.sleep = sleep
        self.probe = probe
        self.supervisor = supervisor
        self.scan = scan

        self.state = LoopState.STARTING
        self.handle: Optional[ServerHandle] = None
        self.last_result: Optional[BuildResult] = None
        self.rebuilds = 0

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _build(self) -> BuildResult:
        result = self.invoker.invoke(self.timeout)
        self.last_result = result
        return result

    def _reload_config(self) -> None:
        """Re-read configuration, keeping the last-known one on failure."""
        try:
            self.config = self.load_config()
        except ConfigError as e:
            log.warning(f"Configuration reload failed, keeping the previous one: {e}")

    def _start_server(self) -> None:
        self.state = LoopState.SERVER_UP
        log.info(f"Starting server ({self.server.url})...")
        handle = self.supervisor.start(self.server)
        self.handle = handle
        self.lifecycle.on_teardown(lambda: self.supervisor.stop(handle))
        if self.lifecycle.torn_down:
            # Stopped while spawning: the cleanup above will never run, and
            # the error log may have brought the control directory back
            self.supervisor.stop(handle)
            self.control.remove()
            return
        self._wait_until_ready()
        if self.open_browser:
            log.info("Opening web browser...")
            webbrowser.open(self.server.url)

    def _wait_until_ready(self) -> None:
        deadline = time.monotonic() + READY_TIMEOUT
        while not self.lifecycle.stop_requested and not self.probe(self.server.host, self.server.port):
            self._check_server()
            if time.monotonic() >= deadline:
                raise ServerUnreachable("Server is not ready.")
            self.sleep(READY_POLL)

    def _check_server(self) -> None:
        """Raise if the server process has died."""
        if self.handle is None or self.lifecycle.stop_requested:
            return
        if self.supervisor.is_running(self.handle):
            return
        code = self.handle.process.returncode
        detail = self._error_log_tail()
        message = f"Server process exited with code {code}"
        if detail:
            message += f":\n{detail}"
        raise ProcessFailure(message)

    def _error_log_tail(self) -> str:
        try:
            lines = self.control.error_log.read_text(encoding="utf-8", errors="replace").splitlines()
        except OSError:
            return ""
        return "\n".join(lines[-ERROR_LOG_TAIL:])

    def _log_changes(self, changes: ChangeSet) -> None:
        log.info("Changes detected.")
        for label, paths in (
            ("Deleted files", changes.removed),
            ("New files", changes.added),
            ("Updated files", changes.modified),
        ):
            if not paths:
                continue
            log.verbose(f"{label}:")
            for path in paths:
                log.verbose(f"- {path}")

    def rebuild(self, changes: ChangeSet) -> BuildResult:
        """One Rebuilding pass. Never raises on a failed build."""
        self.state = LoopState.REBUILDING
        self._log_changes(changes)
        result = self._build()
        self.rebuilds += 1
        if self.lifecycle.stop_requested:
            return result
        self._reload_config()
        if self.lifecycle.stop_requested:
            return result
        if result.ok:
            self.control.write_change_flag()
        else:
            log.warning(f"{result.failure()}; still serving the previous output")
        log.info("Writing headers file...")
        self.control.write_headers(self.config.headers)
        log.info("Server is running...")
        self.state = LoopState.WATCHING
        return result

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    def run(self) -> int:
        """Run until a stop signal (returns 0) or a fatal error (raises).

        Raises:
            SetupError: Control files could not be prepared.
            ServerUnreachable: The liveness probe failed.
            ProcessFailure: The server died or a child could not be spawned.
        """
        self.state = LoopState.STARTING
        self.lifecycle.on_teardown(self.invoker.terminate)
        try:
            if self.lifecycle.stop_requested:
                return 0
            self.control.prepare(self.config.baseurl, self.server.host, self.server.port)

            self.state = LoopState.BUILDING
            result = self._build()
            if self.lifecycle.stop_requested:
                return 0
            if result.ok:
                self.control.write_change_flag()
                log.info("Writing headers file...")
                self.control.write_headers(self.config.headers)
            else:
                log.error(f"Initial build failed ({result.failure()}); serving existing output")

            baseline = self.baseline_factory()
            if self.lifecycle.stop_requested:
                return 0
            self._start_server()

            self.state = LoopState.WATCHING
            while not self.lifecycle.stop_requested:
                self.sleep(self.interval)
                if self.lifecycle.stop_requested:
                    break
                self._check_server()
                if not self.probe(self.server.host, self.server.port):
                    log.info("Server is not ready.")
                    raise ServerUnreachable(f"Server is not reachable at {self.server.url}")
                changes = self.scan(baseline)
                if changes:
                    self.rebuild(changes)
            return 0
        finally:
            self.state = LoopState.STOPPING
            self.lifecycle.teardown()
            self.state = LoopState.STOPPED
