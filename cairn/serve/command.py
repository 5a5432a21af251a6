"""
The ``serve`` command: build, serve and rebuild on change.
"""

from __future__ import annotations

import argparse
import traceback
from pathlib import Path
from typing import Optional

from cairn.build.orchestrator import check_requirements, options_from_args, requirements_check_enabled
from cairn.config import SiteConfig, load_config, split_config_files
from cairn.core.errors import CairnError, SetupError
from cairn.core.utils import ConsoleSink, find_python, is_debug_enabled, log
from cairn.serve import supervisor, watcher
from cairn.serve.control import ControlFiles
from cairn.serve.invoker import BuildInvoker
from cairn.serve.loop import Lifecycle, RebuildLoop
from cairn.serve.supervisor import ServerConfig

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8000
DEFAULT_TIMEOUT = 7200


def cmd_serve(args: argparse.Namespace, version: str) -> int:
    """Execute the serve command."""
    root = Path(args.path).resolve()
    host = args.host or DEFAULT_HOST
    port = args.port or DEFAULT_PORT
    config: Optional[SiteConfig] = None

    if requirements_check_enabled():
        for problem in check_requirements():
            log.warning(problem)

    try:
        options = options_from_args(args)
        config_files = split_config_files(args.config)
        config = load_config(root, config_files)

        log.header(f"cairn {version}: serving {config.title or root.name}")

        python = find_python()
        if not python:
            raise SetupError("Can't find a local Python executable.")
        supervisor.check_ports(host, port)
        if (
            not args.no_ignore_vcs
            and (root / ".gitignore").is_file()
            and not watcher.git_work_tree(root)
        ):
            log.warning(
                ".gitignore found but the site is not in a git work tree (or git is "
                "missing): ignored files will be watched"
            )

        control = ControlFiles(root)
        output_dir = config.path(root, "output")
        server = ServerConfig(
            host=host,
            port=port,
            root=output_dir,
            router=control.router,
            python=python,
            error_log=control.error_log,
        )
        invoker = BuildInvoker(python, root, options, ConsoleSink(), config_files)
        lifecycle = Lifecycle(control)

        def baseline() -> watcher.WatchBaseline:
            return watcher.initialize(
                root,
                output_dir,
                exclusions=(control.dir,),
                ignore_vcs=not args.no_ignore_vcs,
            )

        loop = RebuildLoop(
            config=config,
            control=control,
            invoker=invoker,
            server=server,
            lifecycle=lifecycle,
            baseline_factory=baseline,
            load_config=lambda: load_config(root, config_files),
            timeout=args.timeout,
            open_browser=args.open,
        )

        lifecycle.install_signal_handlers()
        try:
            return loop.run()
        finally:
            lifecycle.restore_signal_handlers()

    except (CairnError, ValueError) as e:
        log.error(str(e))
        if is_debug_enabled(config.debug if config else False):
            traceback.print_exc()
        return 1
