from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Optional

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

CLIENT_SCRIPT = """<script>
(function () {
  var socket = new WebSocket("ws://" + (window.location.hostname || "localhost") + ":%d/");
  socket.onmessage = function (event) {
    if (event.data === "css") {
      document.querySelectorAll('link[rel="stylesheet"]').forEach(function (link) {
        var url = new URL(link.href);
        url.searchParams.set("livereload", Date.now());
        link.href = url.toString();
      });
    } else {
      window.location.reload();
    }
  };
})();
</script>
"""


@dataclass(frozen=True)
class ReloadNotification:
    kind: str = "full"


class LiveReloadChannel:
    """WebSocket endpoint that pushes reload notifications to every connected browser.

    The socket server runs on its own asyncio loop in a background thread;
    :meth:`publish` may be called from any other thread.
    """

    def __init__(self, host: str = "localhost", port: int = 35729):
        self.host = host
        self.port = port
        self.clients: set[ServerConnection] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._error: Optional[BaseException] = None

    async def handler(self, websocket: ServerConnection) -> None:
        self.clients.add(websocket)
        try:
            await websocket.wait_closed()
        finally:
            self.clients.discard(websocket)

    async def serve(self) -> None:
        self._stopped = asyncio.Event()
        async with serve(self.handler, self.host, self.port) as server:
            self.port = server.sockets[0].getsockname()[1]
            self._ready.set()
            await self._stopped.wait()

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self.serve())
        except Exception as exc:
            self._error = exc
        finally:
            self._ready.set()

    def start(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="live-reload", daemon=True)
        self._thread.start()
        self._ready.wait()
        if self._error is not None:
            raise self._error

    async def broadcast(self, message: str) -> int:
        sent = 0
        for client in list(self.clients):
            try:
                await client.send(message)
                sent += 1
            except ConnectionClosed:
                self.clients.discard(client)
        return sent

    def publish(self, notification: ReloadNotification) -> int:
        if self._loop is None or self._stopped is None:
            return 0
        future = asyncio.run_coroutine_threadsafe(self.broadcast(notification.kind), self._loop)
        return future.result(timeout=10)

    def stop(self) -> None:
        if self._loop is None or self._thread is None:
            return
        if self._stopped is not None:
            self._loop.call_soon_threadsafe(self._stopped.set)
        self._thread.join()
        self._loop.close()
        self._loop = None


def inject_reload_script(page: bytes, reload_port: int) -> bytes:
    script = (CLIENT_SCRIPT % reload_port).encode("utf-8")
    marker = page.lower().rfind(b"</body>")
    if marker == -1:
        return page + script
    return page[:marker] + script + page[marker:]


class DevRequestHandler(SimpleHTTPRequestHandler):
    def __init__(self, *args, reload_port: int, **kwargs):
        self.reload_port = reload_port
        super().__init__(*args, **kwargs)

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        pass

    def do_GET(self):
        path = Path(self.translate_path(self.path))
        if path.is_dir() and self.path.split("?", 1)[0].endswith("/"):
            path = path / "index.html"
        if path.suffix.lower() in {".html", ".htm"} and path.is_file():
            self.send_page(path)
            return
        super().do_GET()

    def send_page(self, path: Path) -> None:
        body = inject_reload_script(path.read_bytes(), self.reload_port)
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class DevServer:
    """Serves the build directory and pushes reload notifications to browsers."""

    def __init__(self, directory: Path, port: int = 3000, host: str = "localhost", reload_port: int = 35729):
        self.directory = directory
        self.host = host
        self.port = port
        self.channel = LiveReloadChannel(host, reload_port)
        self._httpd: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    def notify(self, notification: ReloadNotification) -> None:
        clients = self.channel.publish(notification)
        print(f"[serve] Reload ({notification.kind}) sent to {clients} client(s)")

    def start(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self.channel.start()
        handler = partial(DevRequestHandler, directory=str(self.directory), reload_port=self.channel.port)
        try:
            self._httpd = ThreadingHTTPServer((self.host, self.port), handler)
        except OSError:
            self.channel.stop()
            raise
        self.port = self._httpd.server_address[1]
        self._thread = threading.Thread(target=self._httpd.serve_forever, name="dev-server", daemon=True)
        self._thread.start()
        print(f"[serve] {self.url} (serving {self.directory}, live reload on port {self.channel.port})")

    def stop(self) -> None:
        if self._httpd is None:
            return
        self._httpd.shutdown()
        self._httpd.server_close()
        self._httpd = None
        self.channel.stop()
        print("[serve] stopped")
