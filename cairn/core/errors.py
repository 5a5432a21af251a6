"""
Error taxonomy for cairn.

Setup and server-liveness errors are fatal to the serve command; build
failures during watching are reported and the loop carries on.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from cairn.build.metrics import BuildMetrics


class CairnError(Exception):
    """Base class for all cairn errors."""


class ConfigError(CairnError):
    """Site configuration is unreadable or invalid."""


class SetupError(CairnError):
    """Serve preparation failed before any process was started."""


class BuildError(CairnError):
    """A pipeline stage raised; the run was aborted at that stage."""

    def __init__(
        self,
        stage: str,
        cause: BaseException,
        metrics: Optional["BuildMetrics"] = None,
    ) -> None:
        super().__init__(f"{stage}: {cause}")
        self.stage = stage
        self.cause = cause
        self.metrics = metrics


class BuildFailure(CairnError):
    """A build child process exited non-zero or timed out."""

    def __init__(self, exit_code: Optional[int], timed_out: bool = False) -> None:
        if timed_out:
            message = "Build process timed out"
        else:
            message = f"Build process exited with code {exit_code}"
        super().__init__(message)
        self.exit_code = exit_code
        self.timed_out = timed_out


class ServerUnreachable(CairnError):
    """The local server did not accept a TCP connection."""


class ProcessFailure(CairnError):
    """A managed child process crashed or could not be spawned."""
