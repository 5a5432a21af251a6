"""
Content-hash change watcher.

Keeps a path -> checksum baseline of the site tree and reports which files
were added, removed or modified since the previous scan. Modification times
are never consulted, so touching a file without editing it is not a change.
"""

from __future__ import annotations

import os
import subprocess
import zlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from cairn.core.utils import log

CHUNK_SIZE = 64 * 1024
VCS_DIRS = frozenset({".git", ".hg", ".svn", ".bzr", "CVS", "_darcs"})


@dataclass(frozen=True)
class ChangeSet:
    """Paths (relative, POSIX style) changed between two scans.

    A path is in at most one category.
    """

    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    modified: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.added or self.removed or self.modified)

    def __len__(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified)


@dataclass
class WatchBaseline:
    """Remembered state of the tree. Owned by the watcher functions."""

    root: Path
    output_dir: Path
    exclusions: tuple[Path, ...] = ()
    ignore_vcs: bool = True
    hashes: dict[str, int] = field(default_factory=dict)


# =============================================================================
# Hashing
# =============================================================================


def checksum(path: Path) -> int:
    """CRC32 of a file's content, read in chunks."""
    value = 0
    with open(path, "rb") as f:
        while True:
            chunk = f.read(CHUNK_SIZE)
            if not chunk:
                break
            value = zlib.crc32(chunk, value)
    return value


# =============================================================================
# Enumeration
# =============================================================================


def vcs_ignored(root: Path) -> list[Path]:
    """Paths git ignores under ``root`` (directories collapsed).

    Only consulted when ``root`` carries a ``.gitignore``. Returns an empty
    list when git is unavailable or the root is not a work tree.
    """
    if not (root / ".gitignore").is_file():
        return []
    try:
        proc = subprocess.run(
            ["git", "ls-files", "--others", "--ignored", "--exclude-standard", "--directory"],
            cwd=root,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        log.debug(f"git unavailable, VCS-ignored files will be watched: {e}")
        return []
    if proc.returncode != 0:
        log.debug("Not a git work tree, VCS-ignored files will be watched")
        return []
    return [(root / line.rstrip("/")).resolve() for line in proc.stdout.splitlines() if line]


def git_work_tree(root: Path) -> bool:
    """True when git is installed and ``root`` lies inside a work tree."""
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            cwd=root,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            text=True,
            check=False,
        )
    except OSError:
        return False
    return proc.returncode == 0 and proc.stdout.strip() == "true"


def _is_under(path: Path, parents: Iterable[Path]) -> bool:
    for parent in parents:
        if path == parent or parent in path.parents:
            return True
    return False


def enumerate_files(baseline: WatchBaseline) -> list[Path]:
    """Watchable files under the baseline root, sorted.

    Skips dot-files and dot-directories, VCS metadata, the output directory
    and every configured exclusion.
    """
    root = baseline.root
    excluded = [baseline.output_dir, *baseline.exclusions]
    if baseline.ignore_vcs:
        excluded.extend(vcs_ignored(root))

    files = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames
            if not d.startswith(".")
            and d not in VCS_DIRS
            and not _is_under(current / d, excluded)
        )
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            path = current / name
            if not _is_under(path, excluded):
                files.append(path)
    return files


def _snapshot(baseline: WatchBaseline) -> dict[str, int]:
    hashes = {}
    for path in enumerate_files(baseline):
        try:
            hashes[path.relative_to(baseline.root).as_posix()] = checksum(path)
        except OSError as e:
            # Vanished or unreadable between listing and reading: treated as absent
            log.debug(f"Skipping {path}: {e}")
    return hashes


# =============================================================================
# Public API
# =============================================================================


def initialize(
    root: Path,
    output_dir: Path,
    exclusions: Iterable[Path] = (),
    ignore_vcs: bool = True,
) -> WatchBaseline:
    """Create the baseline for ``root``. The next scan reports no changes
    unless the tree changes in between."""
    root = root.resolve()
    baseline = WatchBaseline(
        root=root,
        output_dir=output_dir.resolve(),
        exclusions=tuple(Path(p).resolve() for p in exclusions),
        ignore_vcs=ignore_vcs,
    )
    baseline.hashes = _snapshot(baseline)
    log.debug(f"Watching {len(baseline.hashes)} file(s) under {root}")
    return baseline


def scan(baseline: WatchBaseline) -> ChangeSet:
    """Diff the tree against the baseline, then replace the baseline."""
    current = _snapshot(baseline)
    previous = baseline.hashes

    added = sorted(p for p in current if p not in previous)
    removed = sorted(p for p in previous if p not in current)
    modified = sorted(p for p in current if p in previous and current[p] != previous[p])

    baseline.hashes = current
    return ChangeSet(added=tuple(added), removed=tuple(removed), modified=tuple(modified))
