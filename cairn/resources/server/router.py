"""
Development router for ``cairn serve``.

Copied into the site's control directory and run as a separate process:

    python .cairn/router.py --host localhost --port 8000 --root _site

Serves the output directory over HTTP, applies response headers from
``headers.ini``, rewrites the production base URL to the local one in HTML,
and, once ``changes.flag`` exists, injects the live-reload client. A
WebSocket server on ``port + 1`` tells connected browsers to reload whenever
``changes.flag`` changes.
"""

from __future__ import annotations

import argparse
import asyncio
import configparser
import fnmatch
import functools
import json
import sys
import threading
import time
from http import HTTPStatus
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlsplit

import websockets
from websockets.asyncio.server import ServerConnection, serve as ws_serve

CONTROL_DIR = Path(__file__).resolve().parent
CHANGES_FLAG = CONTROL_DIR / "changes.flag"
HEADERS_FILE = CONTROL_DIR / "headers.ini"
BASEURL_FILE = CONTROL_DIR / "baseurl"
LIVERELOAD_FILE = CONTROL_DIR / "livereload.js"
FLAG_POLL_SECONDS = 0.5


# =============================================================================
# Control Files
# =============================================================================


def read_headers() -> list[tuple[str, list[tuple[str, str]]]]:
    """Parse ``headers.ini`` into ``[(pattern, [(key, value), ...]), ...]``."""
    if not HEADERS_FILE.is_file():
        return []
    parser = configparser.ConfigParser(interpolation=None, strict=False)
    parser.optionxform = str  # keep header name case
    parser.read(HEADERS_FILE, encoding="utf-8")
    rules = []
    for section in parser.sections():
        headers = [(key, value.strip().strip('"')) for key, value in parser.items(section)]
        rules.append((section, headers))
    return rules


def read_baseurl() -> tuple[str, str]:
    """(configured base URL, local URL) from the ``baseurl`` marker."""
    try:
        configured, _, local = BASEURL_FILE.read_text(encoding="utf-8").partition(";")
    except OSError:
        return "", ""
    return configured.strip(), local.strip()


def matching_headers(path: str) -> list[tuple[str, str]]:
    matched = []
    for pattern, headers in read_headers():
        if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(path.rstrip("/") or "/", pattern):
            matched.extend(headers)
    return matched


def live_reload_snippet(ws_port: int) -> str:
    script = LIVERELOAD_FILE.read_text(encoding="utf-8")
    return "<script>\n" + script.replace("__CAIRN_WS_PORT__", str(ws_port)) + "\n</script>"


def transform_html(html: str, ws_port: int) -> str:
    """Apply base URL rewriting and live-reload injection to a page."""
    configured, local = read_baseurl()
    if configured and local:
        html = html.replace(configured.rstrip("/") + "/", local)

    if CHANGES_FLAG.exists():
        snippet = live_reload_snippet(ws_port)
        if "</body>" in html:
            html = html.replace("</body>", snippet + "\n</body>", 1)
        elif "</html>" in html:
            html = html.replace("</html>", snippet + "\n</html>", 1)
        else:
            html += snippet
    return html


# =============================================================================
# HTTP Handler
# =============================================================================


class RouterHandler(SimpleHTTPRequestHandler):
    """Static file handler with header rules and HTML rewriting."""

    ws_port: int = 8001

    def log_message(self, format, *args):
        # Errors end up in the control directory's errors.log via stderr
        pass

    def log_error(self, format, *args):
        sys.stderr.write("%s - %s\n" % (self.address_string(), format % args))

    def end_headers(self):
        path = unquote(urlsplit(self.path).path)
        for key, value in matching_headers(path):
            self.send_header(key, value)
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def do_GET(self):
        f_path = Path(self.translate_path(self.path))
        if f_path.is_dir():
            index = f_path / "index.html"
            if index.exists():
                f_path = index

        if f_path.is_file() and f_path.suffix in (".html", ".htm"):
            try:
                content = f_path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                self.send_error(HTTPStatus.NOT_FOUND, str(e))
                return
            encoded = transform_html(content, self.ws_port).encode("utf-8")
            self.send_response(HTTPStatus.OK)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)
            return

        super().do_GET()


# =============================================================================
# WebSocket Reload Broadcaster
# =============================================================================


class ReloadBroadcaster:
    """Tracks WebSocket clients and broadcasts reload messages to them."""

    def __init__(self):
        self._clients: set[ServerConnection] = set()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def set_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    async def handler(self, websocket: ServerConnection) -> None:
        with self._lock:
            self._clients.add(websocket)
        try:
            async for _ in websocket:
                pass
        except websockets.exceptions.ConnectionClosed:
            pass
        finally:
            with self._lock:
                self._clients.discard(websocket)

    def broadcast(self, message: dict) -> None:
        """Thread-safe: called from the flag polling thread."""
        if self._loop is None:
            return
        with self._lock:
            clients = set(self._clients)
        if not clients:
            return
        data = json.dumps(message)

        async def _send_all():
            await asyncio.gather(*(self._safe_send(c, data) for c in clients))

        asyncio.run_coroutine_threadsafe(_send_all(), self._loop)

    @staticmethod
    async def _safe_send(client: ServerConnection, data: str) -> None:
        try:
            await client.send(data)
        except websockets.exceptions.ConnectionClosed:
            pass


async def _ws_process_request(connection, request):
    """Only accept WebSocket connections on /ws."""
    if request.path != "/ws":
        return connection.respond(HTTPStatus.NOT_FOUND, "Not found\n")
    return None


def _read_flag() -> Optional[str]:
    try:
        return CHANGES_FLAG.read_text(encoding="utf-8")
    except OSError:
        return None


def watch_flag(broadcaster: ReloadBroadcaster) -> None:
    """Broadcast a reload each time ``changes.flag`` is rewritten."""
    last = _read_flag()
    while True:
        time.sleep(FLAG_POLL_SECONDS)
        current = _read_flag()
        if current is not None and current != last:
            broadcaster.broadcast({"type": "reload"})
        last = current


# =============================================================================
# Main
# =============================================================================


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="cairn development router")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--root", required=True, help="Directory to serve")
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    root = Path(args.root)
    root.mkdir(parents=True, exist_ok=True)
    ws_port = args.port + 1

    broadcaster = ReloadBroadcaster()
    loop = asyncio.new_event_loop()
    broadcaster.set_loop(loop)

    async def run_ws_server():
        async with ws_serve(
            broadcaster.handler,
            args.host,
            ws_port,
            process_request=_ws_process_request,
        ):
            await asyncio.Future()

    def ws_thread_target():
        asyncio.set_event_loop(loop)
        loop.run_until_complete(run_ws_server())

    threading.Thread(target=ws_thread_target, daemon=True).start()
    threading.Thread(target=watch_flag, args=(broadcaster,), daemon=True).start()

    RouterHandler.ws_port = ws_port
    handler_factory = functools.partial(RouterHandler, directory=str(root))
    httpd = ThreadingHTTPServer((args.host, args.port), handler_factory)
    try:
        httpd.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        httpd.server_close()
        loop.call_soon_threadsafe(loop.stop)
    return 0


if __name__ == "__main__":
    sys.exit(main())
