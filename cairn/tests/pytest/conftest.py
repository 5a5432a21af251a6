"""
Shared pytest fixtures for cairn tests.

Provides fixtures for creating small, isolated sites on disk.

Test Tier Markers:
  @pytest.mark.evergreen - Tests that always run, never skip (production tests)
  @pytest.mark.dev       - Development/WIP tests, toggle-able
"""

from __future__ import annotations

import io
import textwrap
from contextlib import redirect_stdout
from pathlib import Path
from typing import Generator

import pytest

from cairn.core.utils import VERBOSITY_NORMAL, log


# =============================================================================
# Site Factory
# =============================================================================

SITE_CONFIG = """\
title: Test Site
baseurl: https://example.com/
headers:
  - path: /*.css
    headers:
      - key: Cache-Control
        value: max-age=3600
"""

SITE_PAGES: dict[str, str] = {
    "index.md": """\
        ---
        title: Welcome
        menu: main
        ---
        Hello *world*.
        """,
    "about.md": """\
        ---
        title: About
        weight: 10
        menu:
          main:
            weight: 5
        ---
        About us.
        """,
    "blog/first-post.md": """\
        ---
        title: First Post
        date: 2024-01-01
        tags: [python, web]
        ---
        # Heading

        First post body.
        """,
    "blog/second-post.md": """\
        ---
        title: Second Post
        date: 2024-02-01
        tags: [python]
        ---
        Second post body.
        """,
    "blog/wip.md": """\
        ---
        title: Work In Progress
        draft: true
        ---
        Not ready.
        """,
}


def write_file(path: Path, content: str) -> Path:
    """Write dedented content, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content), encoding="utf-8")
    return path


def make_site(root: Path) -> Path:
    """Create a small site: config, pages, data and a static file.

    Returns the site root.
    """
    write_file(root / "cairn.yml", SITE_CONFIG)
    for name, content in SITE_PAGES.items():
        write_file(root / "content" / name, content)
    write_file(root / "data" / "team" / "members.yml", "- name: Ada\n- name: Linus\n")
    write_file(root / "data" / "settings.json", '{"theme": "dark"}')
    write_file(root / "static" / "robots.txt", "User-agent: *\n")
    write_file(root / "static" / ".hidden", "secret\n")
    return root


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for test tiers."""
    config.addinivalue_line(
        "markers",
        "evergreen: tests that always run, never skip (production tests)"
    )
    config.addinivalue_line(
        "markers",
        "dev: development/WIP tests, toggle-able for active development"
    )


@pytest.fixture(autouse=True)
def plain_logger() -> Generator[None, None, None]:
    """Colorless, normal-verbosity logging for every test, restored after."""
    color, verbosity = log.use_color, log.verbosity
    log.set_color(False)
    log.set_verbosity(VERBOSITY_NORMAL)
    yield
    log.set_color(color)
    log.set_verbosity(verbosity)


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """A freshly created sample site."""
    return make_site(tmp_path / "site")


# =============================================================================
# CLI Runner
# =============================================================================


class CLIResult:
    """Result of running a CLI command."""

    def __init__(self, returncode: int, stdout: str):
        self.returncode = returncode
        self.stdout = stdout

    def __repr__(self) -> str:
        return f"CLIResult(returncode={self.returncode}, stdout={self.stdout[:100]!r}...)"


class CLIRunner:
    """Helper class to run CLI commands in-process with captured output."""

    def __init__(self, monkeypatch: pytest.MonkeyPatch):
        self.monkeypatch = monkeypatch
        # Skip the startup self-check so output only reflects the command
        monkeypatch.setenv("CAIRN_REQUIREMENT_CHECKER", "0")

    def run(self, args: list[str]) -> CLIResult:
        """Run CLI with given args (without the 'cairn' prefix)."""
        from cairn.cli import main

        stdout_capture = io.StringIO()

        with redirect_stdout(stdout_capture):
            try:
                returncode = main(args)
            except SystemExit as e:
                returncode = e.code if isinstance(e.code, int) else 1

        return CLIResult(
            returncode=returncode or 0,
            stdout=stdout_capture.getvalue(),
        )


@pytest.fixture
def cli_runner(monkeypatch: pytest.MonkeyPatch) -> CLIRunner:
    return CLIRunner(monkeypatch)
