"""
cairn.serve - Live rebuild-and-serve development loop.
"""

from cairn.serve.control import ControlFiles
from cairn.serve.invoker import BuildInvoker, BuildResult
from cairn.serve.loop import Lifecycle, LoopState, RebuildLoop
from cairn.serve.supervisor import ServerConfig, ServerHandle
from cairn.serve.watcher import ChangeSet, WatchBaseline, initialize, scan

__all__ = [
    "BuildInvoker",
    "BuildResult",
    "ChangeSet",
    "ControlFiles",
    "Lifecycle",
    "LoopState",
    "RebuildLoop",
    "ServerConfig",
    "ServerHandle",
    "WatchBaseline",
    "initialize",
    "scan",
]
