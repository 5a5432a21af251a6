"""
Static file stages: list and copy the static directory verbatim.
"""

from __future__ import annotations

import shutil

from cairn.build.stages.base import Stage, iter_files
from cairn.core.utils import log


class LoadStatic(Stage):
    name = "Loading static files"

    def can_process(self) -> bool:
        return self.context.dir("static").is_dir()

    def process(self) -> None:
        self.context.static_files = list(iter_files(self.context.dir("static")))
        log.verbose(f"{len(self.context.static_files)} static file(s) found")


class CopyStatic(Stage):
    """Copies static files into the output directory (not in dry-run)."""

    name = "Copying static files"

    def can_process(self) -> bool:
        return not self.options.dry_run and self.context.dir("static").is_dir()

    def process(self) -> None:
        static_dir = self.context.dir("static")
        output_dir = self.context.output_dir
        for file in self.context.static_files:
            target = output_dir / file.relative_to(static_dir)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(file, target)
        log.verbose(f"{len(self.context.static_files)} file(s) copied")
