"""
Stage contract shared by every pipeline step.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from cairn.build.context import BuildContext
from cairn.build.options import BuildOptions


class Stage:
    """One unit of the build pipeline.

    The pipeline instantiates each stage with the shared context, calls
    :meth:`init` with the run options, and only runs :meth:`process` when
    :meth:`can_process` returns true.

    Eligibility is decided for every stage before the first one runs, so
    ``can_process`` may only look at options, configuration and the file
    system, never at state produced by earlier stages.
    """

    name = "stage"

    def __init__(self, context: BuildContext):
        self.context = context
        self.config = context.config
        self.options = context.options

    def init(self, options: BuildOptions) -> None:
        self.options = options

    def can_process(self) -> bool:
        return True

    def process(self) -> None:
        raise NotImplementedError


def is_hidden(path: Path, root: Path) -> bool:
    """True if any component of ``path`` below ``root`` starts with a dot."""
    return any(part.startswith(".") for part in path.relative_to(root).parts)


def iter_files(root: Path, suffixes: tuple[str, ...] = ()) -> Iterator[Path]:
    """Sorted, non-hidden files under ``root`` (optionally by suffix)."""
    if not root.is_dir():
        return
    for path in sorted(root.rglob("*")):
        if not path.is_file() or is_hidden(path, root):
            continue
        if suffixes and path.suffix.lower() not in suffixes:
            continue
        yield path
