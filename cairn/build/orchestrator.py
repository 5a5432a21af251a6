"""
Build pipeline orchestrator for cairn.

Walks the stage registry in order, keeps the eligible stages, runs them one
after another over a shared context, and records per-stage metrics.
"""

from __future__ import annotations

import argparse
import os
import re
import shutil
import sys
import traceback
from pathlib import Path
from typing import Optional, Sequence

from cairn.build.context import BuildContext
from cairn.build.metrics import BuildMetrics, MetricsRecorder
from cairn.build.options import BuildOptions, parse_clear_cache, parse_optimize
from cairn.build.stages import STAGES, Stage
from cairn.config import SiteConfig, config_warnings, load_config, split_config_files
from cairn.core.errors import BuildError, CairnError
from cairn.core.utils import (
    ENV_REQUIREMENT_CHECKER,
    VERBOSITY_DEBUG,
    VERBOSITY_NORMAL,
    VERBOSITY_QUIET,
    VERBOSITY_VERBOSE,
    is_debug_enabled,
    log,
)

MIN_PYTHON = (3, 9)


# =============================================================================
# Pipeline
# =============================================================================


class Pipeline:
    """Runs the ordered stage registry over one build context."""

    def __init__(
        self,
        root: Path,
        config: SiteConfig,
        version: str,
        stages: Sequence[type[Stage]] = STAGES,
    ):
        self.root = root
        self.config = config
        self.version = version
        self.stages = tuple(stages)
        self.context: Optional[BuildContext] = None

    def resolve(self, options: BuildOptions) -> list[Stage]:
        """Instantiate every stage and keep the eligible ones, in order."""
        self.context = BuildContext(
            root=self.root,
            config=self.config,
            options=options,
            version=self.version,
        )
        eligible = []
        for stage_cls in self.stages:
            stage = stage_cls(self.context)
            try:
                stage.init(options)
                eligible_now = stage.can_process()
            except Exception as e:
                raise BuildError(stage.name, e) from e
            if eligible_now:
                eligible.append(stage)
            else:
                log.debug(f"Skipping stage: {stage.name}")
        return eligible

    def run(self, options: BuildOptions) -> BuildMetrics:
        """Run the pipeline.

        Stages run strictly in sequence. The first stage to raise aborts the
        run; files already written stay on disk.

        Raises:
            BuildError: Carrying the failing stage's name and the metrics of
                the stages that completed before it.
        """
        recorder = MetricsRecorder()
        recorder.start()
        stages: list[Stage] = []

        try:
            stages = self.resolve(options)
            total = len(stages)
            for index, stage in enumerate(stages, start=1):
                log.info(f"[{index}/{total}] {stage.name}")
                started_at, start_memory = recorder.mark()
                try:
                    stage.process()
                except Exception as e:
                    raise BuildError(stage.name, e, recorder.snapshot()) from e
                metric = recorder.record(stage.name, started_at, start_memory)
                log.verbose(f"{stage.name} done in {metric.summary()}")
        finally:
            metrics = recorder.finish()

        log.success(f"Built in {metrics.summary()}")
        return metrics


# =============================================================================
# Build Helpers
# =============================================================================


def check_requirements() -> list[str]:
    """Startup self-check. Returns problems found (empty when all good)."""
    problems = []
    if sys.version_info < MIN_PYTHON:
        problems.append(
            f"Python {'.'.join(map(str, MIN_PYTHON))}+ is required "
            f"(running {sys.version.split()[0]})"
        )
    if shutil.which("git") is None:
        problems.append("git was not found on PATH (VCS-ignore support disabled)")
    return problems


def requirements_check_enabled() -> bool:
    return os.environ.get(ENV_REQUIREMENT_CHECKER, "1") != "0"


def clear_cache(cache_dir: Path, pattern: bool | str = True) -> int:
    """Remove cache entries. Returns the number of files removed.

    With ``pattern=True`` the whole directory goes; with a regular expression
    only files whose path relative to ``cache_dir`` matches it.
    """
    if not cache_dir.exists():
        return 0
    if pattern is True:
        count = sum(1 for p in cache_dir.rglob("*") if p.is_file())
        shutil.rmtree(cache_dir)
        return count

    regex = re.compile(str(pattern))
    count = 0
    for path in sorted(cache_dir.rglob("*")):
        if path.is_file() and regex.search(path.relative_to(cache_dir).as_posix()):
            path.unlink()
            count += 1
    return count


def verbosity_from_args(args: argparse.Namespace) -> int:
    if getattr(args, "quiet", False):
        return VERBOSITY_QUIET
    count = getattr(args, "verbose", 0) or 0
    if count >= 2:
        return VERBOSITY_DEBUG
    if count == 1:
        return VERBOSITY_VERBOSE
    return VERBOSITY_NORMAL


def options_from_args(args: argparse.Namespace) -> BuildOptions:
    """Build options shared by the ``build`` and ``serve`` commands."""
    return BuildOptions(
        drafts=args.drafts,
        dry_run=getattr(args, "dry_run", False),
        page=args.page,
        optimize=parse_optimize(args.optimize),
        clear_cache=parse_clear_cache(args.clear_cache),
        verbosity=verbosity_from_args(args),
    )


# =============================================================================
# Command
# =============================================================================


def cmd_build(args: argparse.Namespace, version: str) -> int:
    """Execute the build command."""
    root = Path(args.path).resolve()
    config: Optional[SiteConfig] = None

    if requirements_check_enabled():
        for problem in check_requirements():
            log.warning(problem)

    try:
        options = options_from_args(args)
        config = load_config(root, split_config_files(args.config))

        log.header(f"Building {config.title or root.name}")
        for warning in config_warnings(config):
            log.warning(warning)
        if options.dry_run:
            log.info("Dry run: nothing will be written to the output directory")

        if options.clear_cache:
            removed = clear_cache(config.path(root, "cache"), options.clear_cache)
            log.info(f"Cache cleared ({removed} file(s) removed)")

        Pipeline(root, config, version).run(options)
        return 0

    except BuildError as e:
        log.error(f'Stage "{e.stage}" failed: {e.cause}')
        if e.metrics is not None and e.metrics.stages:
            log.dim(f"Completed before failure: {', '.join(e.metrics.stage_names)}")
        if is_debug_enabled(config.debug if config else False):
            traceback.print_exception(type(e.cause), e.cause, e.cause.__traceback__)
        return 1
    except (CairnError, ValueError, re.error) as e:
        log.error(str(e))
        if is_debug_enabled(config.debug if config else False):
            traceback.print_exc()
        return 1
