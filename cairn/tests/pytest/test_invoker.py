"""
Tests for the build invoker.

Real child processes are used; the command is swapped for small inline
Python scripts so no site build actually runs.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from cairn.build.options import BuildOptions
from cairn.core.errors import ProcessFailure
from cairn.core.utils import VERBOSITY_DEBUG, VERBOSITY_QUIET, VERBOSITY_VERBOSE
from cairn.serve.invoker import BuildInvoker, BuildResult, build_arguments


class ListSink:
    """Collects written chunks."""

    def __init__(self):
        self.chunks: list[str] = []

    def write(self, chunk: str) -> None:
        self.chunks.append(chunk)


def scripted(monkeypatch: pytest.MonkeyPatch, code: str) -> None:
    """Make every BuildInvoker run ``python -c <code>`` instead of a build."""
    monkeypatch.setattr(
        BuildInvoker,
        "command",
        property(lambda self: [sys.executable, "-c", code]),
    )


# =============================================================================
# Argument Mapping
# =============================================================================


@pytest.mark.evergreen
class TestBuildArguments:
    """The child receives the serve command's content-relevant options."""

    def test_minimal(self, tmp_path: Path) -> None:
        assert build_arguments(tmp_path, BuildOptions()) == ["build", str(tmp_path)]

    def test_all_options(self, tmp_path: Path) -> None:
        options = BuildOptions(
            drafts=True,
            page="blog/post",
            optimize="html,css",
            clear_cache="^templates",
            verbosity=VERBOSITY_VERBOSE,
        )
        args = build_arguments(tmp_path, options, ["a.yml", "b.yml"])
        assert args == [
            "build", str(tmp_path),
            "--config", "a.yml,b.yml",
            "--drafts",
            "--optimize=html,css",
            "--clear-cache=^templates",
            "-v",
            "--page", "blog/post",
        ]

    def test_flag_forms(self, tmp_path: Path) -> None:
        args = build_arguments(tmp_path, BuildOptions(optimize=True, clear_cache=True))
        assert "--optimize" in args
        assert "--clear-cache" in args

    def test_optimize_disabled(self, tmp_path: Path) -> None:
        assert "--optimize=no" in build_arguments(tmp_path, BuildOptions(optimize=False))

    def test_verbosity_levels(self, tmp_path: Path) -> None:
        assert build_arguments(tmp_path, BuildOptions(verbosity=VERBOSITY_DEBUG))[-1] == "-vv"
        assert build_arguments(tmp_path, BuildOptions(verbosity=VERBOSITY_QUIET))[-1] == "-q"

    def test_command_runs_cairn_module(self, tmp_path: Path) -> None:
        invoker = BuildInvoker("/usr/bin/python3", tmp_path, BuildOptions(), ListSink())
        assert invoker.command[:4] == ["/usr/bin/python3", "-m", "cairn", "build"]

    def test_child_skips_requirement_check(self, tmp_path: Path) -> None:
        invoker = BuildInvoker(sys.executable, tmp_path, BuildOptions(), ListSink())
        assert invoker.environment()["CAIRN_REQUIREMENT_CHECKER"] == "0"


# =============================================================================
# Invocation
# =============================================================================


@pytest.mark.evergreen
class TestInvoke:
    def test_output_streamed_to_sink(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        scripted(monkeypatch, "print('one'); print('two')")
        sink = ListSink()

        result = BuildInvoker(sys.executable, tmp_path, BuildOptions(), sink).invoke(timeout=30)

        assert result.ok
        assert result.exit_code == 0
        assert sink.chunks == ["one\n", "two\n"]
        assert result.output == "one\ntwo\n"

    def test_stderr_is_combined(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        scripted(monkeypatch, "import sys; sys.stderr.write('oops\\n')")
        result = BuildInvoker(sys.executable, tmp_path, BuildOptions(), ListSink()).invoke(timeout=30)
        assert "oops" in result.output

    def test_nonzero_exit_reported(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        scripted(monkeypatch, "import sys; print('failing'); sys.exit(3)")

        result = BuildInvoker(sys.executable, tmp_path, BuildOptions(), ListSink()).invoke(timeout=30)

        assert not result.ok
        assert result.exit_code == 3
        assert not result.timed_out
        assert result.failure().exit_code == 3

    def test_timeout_kills_child(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        scripted(monkeypatch, "import time; time.sleep(30)")

        result = BuildInvoker(sys.executable, tmp_path, BuildOptions(), ListSink()).invoke(timeout=0.5)

        assert result.timed_out
        assert not result.ok
        assert "timed out" in str(result.failure())

    def test_spawn_failure(self, tmp_path: Path) -> None:
        invoker = BuildInvoker(str(tmp_path / "no-such-python"), tmp_path, BuildOptions(), ListSink())
        with pytest.raises(ProcessFailure):
            invoker.invoke()

    def test_terminate_from_same_thread_mid_build(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Teardown runs on the invoking thread (signal handler) and must not block."""
        scripted(monkeypatch, "import time; print('started', flush=True); time.sleep(30)")

        class TerminatingSink(ListSink):
            def write(self, chunk: str) -> None:
                super().write(chunk)
                invoker.terminate()

        invoker = BuildInvoker(sys.executable, tmp_path, BuildOptions(), TerminatingSink())
        result = invoker.invoke(timeout=20)

        assert result.exit_code != 0
        assert not result.timed_out
        assert result.output == "started\n"

    def test_terminate_when_idle_is_noop(self, tmp_path: Path) -> None:
        BuildInvoker(sys.executable, tmp_path, BuildOptions(), ListSink()).terminate()


@pytest.mark.evergreen
class TestBuildResult:
    def test_ok_requires_zero_and_no_timeout(self) -> None:
        assert BuildResult(0, "").ok
        assert not BuildResult(1, "").ok
        assert not BuildResult(0, "", timed_out=True).ok
