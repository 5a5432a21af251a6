"""
cairn.core - Foundation layer for the cairn CLI.

Exports logging, timing helpers and the error taxonomy.
"""

from cairn.core.errors import (
    BuildError,
    BuildFailure,
    CairnError,
    ConfigError,
    ProcessFailure,
    ServerUnreachable,
    SetupError,
)
from cairn.core.timing import (
    current_memory,
    format_duration,
    format_memory,
)
from cairn.core.utils import (
    # Logging
    log,
    Logger,
    # Sinks
    OutputSink,
    ConsoleSink,
    FileSink,
    # Constants
    TMP_DIR,
    RESOURCES_DIR,
    VERBOSITY_QUIET,
    VERBOSITY_NORMAL,
    VERBOSITY_VERBOSE,
    VERBOSITY_DEBUG,
    # Runtime utilities
    find_python,
    resolve_version,
)

__all__ = [
    # Errors
    "CairnError",
    "ConfigError",
    "SetupError",
    "BuildError",
    "BuildFailure",
    "ServerUnreachable",
    "ProcessFailure",
    # Timing
    "current_memory",
    "format_duration",
    "format_memory",
    # Logging
    "log",
    "Logger",
    "OutputSink",
    "ConsoleSink",
    "FileSink",
    # Constants
    "TMP_DIR",
    "RESOURCES_DIR",
    "VERBOSITY_QUIET",
    "VERBOSITY_NORMAL",
    "VERBOSITY_VERBOSE",
    "VERBOSITY_DEBUG",
    # Runtime utilities
    "find_python",
    "resolve_version",
]
