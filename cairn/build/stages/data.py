"""
Data stage: YAML and JSON files exposed to templates as ``data``.
"""

from __future__ import annotations

import json

import yaml

from cairn.build.stages.base import Stage, iter_files

DATA_SUFFIXES = (".yml", ".yaml", ".json")


class LoadData(Stage):
    """Loads data files into a nested mapping keyed by path parts.

    ``data/team/members.yml`` becomes ``data["team"]["members"]``.
    """

    name = "Loading data"

    def can_process(self) -> bool:
        return self.context.dir("data").is_dir()

    def process(self) -> None:
        data_dir = self.context.dir("data")
        for file in iter_files(data_dir, DATA_SUFFIXES):
            text = file.read_text(encoding="utf-8")
            if file.suffix.lower() == ".json":
                value = json.loads(text)
            else:
                value = yaml.safe_load(text)

            *parents, leaf = file.relative_to(data_dir).with_suffix("").parts
            node = self.context.data
            for part in parents:
                node = node.setdefault(part, {})
            node[leaf] = value
