"""
Shared utilities for the cairn CLI.
"""

from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path
from typing import IO, Optional, Protocol

from cairn import __version__

# =============================================================================
# Constants
# =============================================================================

PACKAGE_ROOT = Path(__file__).resolve().parent.parent
RESOURCES_DIR = PACKAGE_ROOT / "resources"
DEFAULT_VERSION = __version__

# Per-run directory (relative to the site root) holding the server control files
TMP_DIR = ".cairn"

# Environment flags shared by parent and child processes
ENV_FORCE_COLOR = "CAIRN_FORCE_COLOR"
ENV_REQUIREMENT_CHECKER = "CAIRN_REQUIREMENT_CHECKER"
ENV_DEBUG = "CAIRN_DEBUG"

VERBOSITY_QUIET = -1
VERBOSITY_NORMAL = 0
VERBOSITY_VERBOSE = 1
VERBOSITY_DEBUG = 2


# =============================================================================
# Logging
# =============================================================================


class Logger:
    """Simple colored logger with --no-color and verbosity support."""

    COLORS = {
        "reset": "\033[0m",
        "red": "\033[91m",
        "green": "\033[92m",
        "yellow": "\033[93m",
        "blue": "\033[94m",
        "magenta": "\033[95m",
        "cyan": "\033[96m",
        "bold": "\033[1m",
        "dim": "\033[2m",
    }

    def __init__(self, use_color: Optional[bool] = None, verbosity: int = VERBOSITY_NORMAL):
        if use_color is None:
            self._use_color = sys.stdout.isatty() or os.environ.get(ENV_FORCE_COLOR) == "1"
        else:
            self._use_color = use_color
        self.verbosity = verbosity

    @property
    def use_color(self) -> bool:
        return self._use_color

    def set_color(self, use_color: bool) -> None:
        """Set whether to use color output."""
        self._use_color = use_color

    def set_verbosity(self, verbosity: int) -> None:
        """Set the output verbosity (VERBOSITY_* constants)."""
        self.verbosity = verbosity

    def is_verbose(self) -> bool:
        return self.verbosity >= VERBOSITY_VERBOSE

    def is_debug(self) -> bool:
        return self.verbosity >= VERBOSITY_DEBUG

    def _color(self, text: str, color: str) -> str:
        if not self._use_color:
            return text
        return f"{self.COLORS.get(color, '')}{text}{self.COLORS['reset']}"

    def header(self, message: str) -> None:
        """Print a section header."""
        if self.verbosity < VERBOSITY_NORMAL:
            return
        print(f"\n{self._color('===', 'cyan')} {self._color(message, 'bold')} {self._color('===', 'cyan')}")

    def info(self, message: str) -> None:
        """Print an info message."""
        if self.verbosity < VERBOSITY_NORMAL:
            return
        print(f"  {message}")

    def verbose(self, message: str) -> None:
        """Print a message only at verbose level or above."""
        if self.verbosity < VERBOSITY_VERBOSE:
            return
        print(f"  {message}")

    def debug(self, message: str) -> None:
        """Print a message only at debug level."""
        if self.verbosity < VERBOSITY_DEBUG:
            return
        print(f"  {self._color(message, 'magenta')}")

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.verbosity < VERBOSITY_NORMAL:
            return
        print(f"  {self._color('[OK]', 'green')} {message}")

    def warning(self, message: str) -> None:
        """Print a warning message."""
        print(f"  {self._color('[WARN]', 'yellow')} {message}")

    def error(self, message: str) -> None:
        """Print an error message."""
        print(f"  {self._color('[ERROR]', 'red')} {message}")

    def dim(self, message: str) -> None:
        """Print a dim/secondary message."""
        if self.verbosity < VERBOSITY_NORMAL:
            return
        print(f"  {self._color(message, 'dim')}")

    def raw(self, chunk: str) -> None:
        """Write a chunk as-is (child process output)."""
        sys.stdout.write(chunk)
        sys.stdout.flush()


# Global logger instance
log = Logger()


# =============================================================================
# Output Sinks
# =============================================================================


class OutputSink(Protocol):
    """Destination for output produced by a child process."""

    def write(self, chunk: str) -> None:
        ...


class ConsoleSink:
    """Passes child output straight through to the console."""

    def __init__(self, logger: Logger = log):
        self.logger = logger

    def write(self, chunk: str) -> None:
        self.logger.raw(chunk)


class FileSink:
    """Appends child output to a log file.

    Text goes through :meth:`write`; a child process that needs a real file
    descriptor gets one from :meth:`open`.
    """

    def __init__(self, path: Path):
        self.path = path

    def write(self, chunk: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(chunk)

    def open(self) -> IO[bytes]:
        """Binary append handle on the log file; the caller closes it."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return self.path.open("ab")


# =============================================================================
# Runtime Utilities
# =============================================================================


def resolve_version() -> str:
    """Resolve the application version from installed metadata.

    Called once by the CLI entry point; the value is passed down explicitly.
    """
    from importlib import metadata

    try:
        return metadata.version("cairn-ssg")
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION


def find_python() -> Optional[str]:
    """Locate an interpreter able to run a build child process."""
    if sys.executable:
        return sys.executable
    return shutil.which("python3") or shutil.which("python")


def is_debug_enabled(config_debug: bool = False) -> bool:
    """Debug mode from the environment or the site configuration."""
    return os.environ.get(ENV_DEBUG, "").lower() == "true" or config_debug
