"""
Build invoker: runs ``cairn build`` as a child process.

The child's combined stdout/stderr is streamed line by line into an output
sink while it runs, and also kept for the result.
"""

from __future__ import annotations

import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from cairn.build.options import BuildOptions
from cairn.core.errors import BuildFailure, ProcessFailure
from cairn.core.utils import (
    ENV_FORCE_COLOR,
    ENV_REQUIREMENT_CHECKER,
    VERBOSITY_DEBUG,
    VERBOSITY_QUIET,
    VERBOSITY_VERBOSE,
    OutputSink,
    log,
)


@dataclass(frozen=True)
class BuildResult:
    exit_code: Optional[int]
    output: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_code == 0

    def failure(self) -> BuildFailure:
        return BuildFailure(self.exit_code, self.timed_out)


def build_arguments(
    root: Path,
    options: BuildOptions,
    config_files: Sequence[str] = (),
) -> list[str]:
    """``cairn build`` arguments mirroring the serve command's options."""
    args = ["build", str(root)]
    if config_files:
        args += ["--config", ",".join(config_files)]
    if options.drafts:
        args.append("--drafts")
    if options.optimize is True:
        args.append("--optimize")
    elif options.optimize is False:
        args.append("--optimize=no")
    elif options.optimize:
        args.append(f"--optimize={options.optimize}")
    if options.clear_cache is True:
        args.append("--clear-cache")
    elif options.clear_cache:
        args.append(f"--clear-cache={options.clear_cache}")
    if options.verbosity >= VERBOSITY_DEBUG:
        args.append("-vv")
    elif options.verbosity == VERBOSITY_VERBOSE:
        args.append("-v")
    elif options.verbosity == VERBOSITY_QUIET:
        args.append("-q")
    if options.page:
        args += ["--page", options.page]
    return args


class BuildInvoker:
    """Spawns build children and waits for them, one at a time."""

    def __init__(
        self,
        python: str,
        root: Path,
        options: BuildOptions,
        sink: OutputSink,
        config_files: Sequence[str] = (),
    ):
        self.python = python
        self.root = root
        self.options = options
        self.sink = sink
        self.config_files = list(config_files)
        # Only touched from the main thread, including the signal handler
        self._process: Optional[subprocess.Popen] = None

    @property
    def command(self) -> list[str]:
        return [self.python, "-m", "cairn", *build_arguments(self.root, self.options, self.config_files)]

    def environment(self) -> dict[str, str]:
        env = dict(os.environ)
        # The parent already ran the startup self-check
        env[ENV_REQUIREMENT_CHECKER] = "0"
        # The child writes to a pipe, so it follows the parent's color choice
        if log.use_color:
            env[ENV_FORCE_COLOR] = "1"
        else:
            env.pop(ENV_FORCE_COLOR, None)
        return env

    def invoke(self, timeout: Optional[float] = None) -> BuildResult:
        """Run one build and block until it exits or ``timeout`` elapses.

        Raises:
            ProcessFailure: If the child cannot be spawned.
        """
        log.debug(f"Build process: {' '.join(self.command)}")
        try:
            proc = subprocess.Popen(
                self.command,
                cwd=self.root,
                env=self.environment(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise ProcessFailure(f"Cannot start build process: {e}") from e

        self._process = proc

        timed_out = threading.Event()

        def _expire() -> None:
            timed_out.set()
            proc.kill()

        timer: Optional[threading.Timer] = None
        if timeout:
            timer = threading.Timer(timeout, _expire)
            timer.daemon = True
            timer.start()

        chunks: list[str] = []
        try:
            assert proc.stdout is not None
            for line in proc.stdout:
                chunks.append(line)
                self.sink.write(line)
            proc.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if proc.stdout is not None:
                proc.stdout.close()
            self._process = None

        return BuildResult(
            exit_code=proc.returncode,
            output="".join(chunks),
            timed_out=timed_out.is_set(),
        )

    def terminate(self) -> None:
        """Kill a build in flight (teardown path). No-op when idle."""
        proc = self._process
        if proc is not None and proc.poll() is None:
            proc.kill()
