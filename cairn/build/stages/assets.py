"""
Asset stage: copies files referenced through the ``asset()`` template helper.
"""

from __future__ import annotations

import shutil

from cairn.build.stages.base import Stage
from cairn.core.utils import log


class SaveAssets(Stage):
    name = "Saving assets"

    def can_process(self) -> bool:
        return not self.options.dry_run

    def process(self) -> None:
        assets_dir = self.context.dir("assets")
        output_dir = self.context.output_dir
        for relative in sorted(self.context.assets):
            source = assets_dir / relative
            if not source.is_file():
                raise FileNotFoundError(f'Asset "{relative}" not found in {assets_dir}')
            target = output_dir / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        log.verbose(f"{len(self.context.assets)} asset(s) saved")
