"""
Server supervisor: owns the long-lived local HTTP server process.
"""

from __future__ import annotations

import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional

from cairn.core.errors import ProcessFailure, SetupError
from cairn.core.utils import FileSink, log

STOP_TIMEOUT = 5.0


@dataclass(frozen=True)
class ServerConfig:
    """Fixed for the lifetime of the serve command."""

    host: str
    port: int
    root: Path
    router: Path
    python: str
    error_log: Path

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    @property
    def command(self) -> list[str]:
        return [
            self.python, str(self.router),
            "--host", self.host,
            "--port", str(self.port),
            "--root", str(self.root),
        ]


@dataclass
class ServerHandle:
    config: ServerConfig
    process: subprocess.Popen
    stderr: Optional[IO[bytes]] = None


def port_available(host: str, port: int) -> bool:
    """True when nothing is bound to ``host:port``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def probe(host: str, port: int, timeout: float = 1.0) -> bool:
    """Liveness probe: can a TCP connection be opened to ``host:port``?"""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def check_ports(host: str, port: int) -> None:
    """Both the HTTP port and the live-reload port (``port + 1``) must be free.

    Raises:
        SetupError: If either is taken.
    """
    for candidate in (port, port + 1):
        if not port_available(host, candidate):
            raise SetupError(f"Port {candidate} is already in use on {host}")


def start(config: ServerConfig) -> ServerHandle:
    """Start the server. Its stderr is appended to ``config.error_log``.

    Raises:
        ProcessFailure: If the process cannot be spawned.
    """
    log.debug(f"Server process: {' '.join(config.command)}")
    sink = FileSink(config.error_log)
    sink.write(f"--- {time.strftime('%Y-%m-%d %H:%M:%S')} starting {config.url}\n")
    stderr = sink.open()
    try:
        process = subprocess.Popen(
            config.command,
            stdout=subprocess.DEVNULL,
            stderr=stderr,
        )
    except OSError as e:
        stderr.close()
        raise ProcessFailure(f"Cannot start server process: {e}") from e
    return ServerHandle(config=config, process=process, stderr=stderr)


def is_running(handle: ServerHandle) -> bool:
    return handle.process.poll() is None


def stop(handle: ServerHandle) -> None:
    """Terminate the server, killing it if it does not exit in time.

    Safe to call more than once.
    """
    process = handle.process
    if process.poll() is None:
        process.terminate()
        try:
            process.wait(timeout=STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
    if handle.stderr is not None:
        handle.stderr.close()
        handle.stderr = None
