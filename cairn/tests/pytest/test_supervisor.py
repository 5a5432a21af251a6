"""
Tests for the server supervisor.
"""

from __future__ import annotations

import socket
import sys
import time
from pathlib import Path
from typing import Iterator

import pytest

from cairn.core.errors import ProcessFailure, SetupError
from cairn.serve import supervisor
from cairn.serve.supervisor import ServerConfig

from .conftest import write_file

FAKE_SERVER = """\
import sys, time
sys.stderr.write("router warming up\\n")
sys.stderr.flush()
time.sleep(30)
"""


@pytest.fixture
def listening() -> Iterator[int]:
    """A bound, listening socket on localhost; yields its port."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


def server_config(tmp_path: Path, python: str = sys.executable) -> ServerConfig:
    router = write_file(tmp_path / "router.py", FAKE_SERVER)
    return ServerConfig(
        host="127.0.0.1",
        port=8000,
        root=tmp_path,
        router=router,
        python=python,
        error_log=tmp_path / ".cairn" / "errors.log",
    )


def wait_for(predicate, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.05)
    return False


# =============================================================================
# Ports
# =============================================================================


@pytest.mark.evergreen
class TestPorts:
    def test_probe_listening(self, listening: int) -> None:
        assert supervisor.probe("127.0.0.1", listening)

    def test_probe_closed(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        assert not supervisor.probe("127.0.0.1", port, timeout=0.5)

    def test_port_in_use(self, listening: int) -> None:
        assert not supervisor.port_available("127.0.0.1", listening)

    def test_check_ports_http_port_taken(self, listening: int) -> None:
        with pytest.raises(SetupError, match=str(listening)):
            supervisor.check_ports("127.0.0.1", listening)

    def test_check_ports_reload_port_taken(self, listening: int) -> None:
        with pytest.raises(SetupError):
            supervisor.check_ports("127.0.0.1", listening - 1)


# =============================================================================
# Process Lifecycle
# =============================================================================


@pytest.mark.evergreen
class TestProcess:
    def test_command_line(self, tmp_path: Path) -> None:
        config = server_config(tmp_path)
        assert config.command[2:] == ["--host", "127.0.0.1", "--port", "8000", "--root", str(tmp_path)]
        assert config.url == "http://127.0.0.1:8000/"

    def test_start_and_stop(self, tmp_path: Path) -> None:
        config = server_config(tmp_path)
        handle = supervisor.start(config)
        try:
            assert supervisor.is_running(handle)
            assert wait_for(lambda: "router warming up" in config.error_log.read_text())
        finally:
            supervisor.stop(handle)

        assert not supervisor.is_running(handle)
        assert handle.stderr is None
        log_text = config.error_log.read_text()
        assert "starting http://127.0.0.1:8000/" in log_text
        assert log_text.index("starting") < log_text.index("router warming up")

    def test_stop_twice(self, tmp_path: Path) -> None:
        handle = supervisor.start(server_config(tmp_path))
        supervisor.stop(handle)
        supervisor.stop(handle)
        assert not supervisor.is_running(handle)

    def test_exited_process_is_not_running(self, tmp_path: Path) -> None:
        config = server_config(tmp_path)
        write_file(config.router, "import sys; sys.exit(2)\n")
        handle = supervisor.start(config)
        try:
            assert wait_for(lambda: not supervisor.is_running(handle))
            assert handle.process.returncode == 2
        finally:
            supervisor.stop(handle)

    def test_spawn_failure(self, tmp_path: Path) -> None:
        config = server_config(tmp_path, python=str(tmp_path / "missing-python"))
        with pytest.raises(ProcessFailure):
            supervisor.start(config)
