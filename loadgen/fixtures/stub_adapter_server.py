from __future__ import annotations

import json
import os
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from loadgen.logger import Logger, session_logger


class StubAdapterServer:
    """Local stand-in for an external adapter.

    Answers every request with ``default_status`` and a small JSON body, or
    with the status registered for the request path via ``status_by_path``.
    Received request bodies are kept in ``requests`` for assertions.

    Addressing follows the fixture server conventions:
      LOADGEN_STUB_HOST           bind host (default 127.0.0.1)
      LOADGEN_STUB_EXTERNAL_HOST  host placed into base_url (default 127.0.0.1)
    """

    def __init__(
        self,
        *,
        port: int = 0,
        default_status: int = 200,
        status_by_path: dict[str, int] | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self.port = port
        self.default_status = default_status
        self.status_by_path: dict[str, int] = dict(status_by_path or {})
        self.requests: list[tuple[str, str, bytes]] = []
        self._requests_lock = threading.Lock()

        self._bind_host = os.environ.get("LOADGEN_STUB_HOST", "127.0.0.1")
        self._external_host = os.environ.get("LOADGEN_STUB_EXTERNAL_HOST", "127.0.0.1")

        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        stub = self

        class Handler(BaseHTTPRequestHandler):
            def _reply(self) -> None:
                length = int(self.headers.get("Content-Length") or 0)
                body = self.rfile.read(length) if length else b""
                with stub._requests_lock:
                    stub.requests.append((self.command, self.path, body))

                status = stub.status_by_path.get(self.path, stub.default_status)
                payload = json.dumps({"statusCode": status, "result": 1}).encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                if self.command != "HEAD":
                    self.wfile.write(payload)

            do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = do_HEAD = _reply

            def log_message(self, format, *args):  # noqa: A002, ARG002
                pass

        class ReusableHTTPServer(ThreadingHTTPServer):
            allow_reuse_address = True
            daemon_threads = True

        self._server = ReusableHTTPServer((self._bind_host, self.port), Handler)
        self.port = int(self._server.server_port)
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        self._logger.info(
            "loadgen.stub_adapter_started",
            bind_host=self._bind_host,
            external_host=self._external_host,
            port=self.port,
            default_status=self.default_status,
        )

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

        self._logger.info("loadgen.stub_adapter_stopped", port=self.port)

    def paths_seen(self) -> list[str]:
        with self._requests_lock:
            return [path for _, path, _ in self.requests]

    @property
    def base_url(self) -> str:
        return f"http://{self._external_host}:{self.port}/"

    def __enter__(self) -> "StubAdapterServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()
        return None
