"""
Control files shared between the serve command and the router process.

All of them live in a per-run directory under the site root that is removed
on teardown.
"""

from __future__ import annotations

import shutil
import time
from pathlib import Path
from typing import Sequence

from cairn.config import HeaderRule
from cairn.core.errors import SetupError
from cairn.core.utils import RESOURCES_DIR, TMP_DIR

SERVER_RESOURCES = RESOURCES_DIR / "server"
ROUTER = "router.py"
LIVERELOAD = "livereload.js"
BASEURL = "baseurl"
CHANGES_FLAG = "changes.flag"
HEADERS = "headers.ini"
ERROR_LOG = "errors.log"


def render_headers(rules: Sequence[HeaderRule]) -> str:
    """Headers file body: a ``[path]`` section per rule, in order."""
    lines = []
    for rule in rules:
        lines.append(f"[{rule.path}]")
        for header in rule.headers:
            lines.append(f'{header.key} = "{header.value}"')
    return "".join(f"{line}\n" for line in lines)


class ControlFiles:
    """The ``.cairn/`` directory of a serve run."""

    def __init__(self, root: Path, resources: Path = SERVER_RESOURCES):
        self.root = root
        self.dir = root / TMP_DIR
        self.resources = resources
        self.removed = False

    @property
    def router(self) -> Path:
        return self.dir / ROUTER

    @property
    def livereload(self) -> Path:
        return self.dir / LIVERELOAD

    @property
    def baseurl(self) -> Path:
        return self.dir / BASEURL

    @property
    def changes_flag(self) -> Path:
        return self.dir / CHANGES_FLAG

    @property
    def headers(self) -> Path:
        return self.dir / HEADERS

    @property
    def error_log(self) -> Path:
        return self.dir / ERROR_LOG

    def prepare(self, baseurl: str, host: str, port: int) -> None:
        """Copy the router and live-reload client, write the baseurl marker.

        Raises:
            SetupError: On any I/O failure, or if the router is missing after.
        """
        if self.removed:
            return
        try:
            self.dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(self.resources / ROUTER, self.router)
            shutil.copyfile(self.resources / LIVERELOAD, self.livereload)
            self.baseurl.write_text(f"{baseurl};http://{host}:{port}/", encoding="utf-8")
        except OSError as e:
            raise SetupError(
                f'An error occurred while copying server\'s files to "{self.dir}": {e}'
            ) from e
        if not self.router.is_file():
            raise SetupError(f'Router not found: "{self.router}"')

    def write_change_flag(self) -> None:
        """Overwrite the change marker with the current timestamp."""
        if self.removed:
            return
        self.dir.mkdir(parents=True, exist_ok=True)
        self.changes_flag.write_text(str(time.time_ns()), encoding="utf-8")

    def write_headers(self, rules: Sequence[HeaderRule]) -> None:
        """Regenerate the headers file. No rules leaves no file."""
        if self.removed:
            return
        self.headers.unlink(missing_ok=True)
        if not rules:
            return
        self.dir.mkdir(parents=True, exist_ok=True)
        self.headers.write_text(render_headers(rules), encoding="utf-8")

    def remove(self) -> None:
        """Delete the directory. A missing directory is not an error.

        Later writes are ignored so a late write cannot bring the directory
        back after teardown.
        """
        self.removed = True
        if self.dir.exists():
            shutil.rmtree(self.dir)
