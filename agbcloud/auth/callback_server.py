"""Local HTTP callback server for browser-based authentication.

The server lives for exactly one login attempt:

    Idle -> Listening -> {code received | failed | timed out} -> Closed

The first outcome wins. A request handler and the caller's deadline race to
record it through a one-shot slot; whichever loses is ignored.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Callable, Generic, Optional, TypeVar
from urllib.parse import parse_qs, urlparse

from .constants import (
    AUTH_TIMEOUT_SECONDS,
    CALLBACK_HOST,
    CALLBACK_PATH,
    ERROR_AUTH_TIMEOUT,
    ERROR_MISSING_CODE,
    SHUTDOWN_GRACE_SECONDS,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CallbackResult:
    """Outcome of waiting for the OAuth redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return bool(self.code)


class _OneShot(Generic[T]):
    """Single-assignment slot. ``claim`` is the compare-and-swap; ``resolve`` publishes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed = False
        self._value: Optional[T] = None
        self._resolved = threading.Event()

    def claim(self) -> bool:
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def resolve(self, value: T) -> None:
        self._value = value
        self._resolved.set()

    def offer(self, value: T) -> bool:
        if not self.claim():
            return False
        self.resolve(value)
        return True

    @property
    def claimed(self) -> bool:
        return self._claimed

    def wait(self, timeout: float | None = None) -> Optional[T]:
        if self._resolved.wait(timeout):
            return self._value
        return None


SUCCESS_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Authentication Successful - AgbCloud CLI</title>
    <style>
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            display: flex;
            justify-content: center;
            align-items: center;
            min-height: 100vh;
            margin: 0;
            background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
        }
        .container {
            text-align: center;
            padding: 3rem 2.5rem;
            background: white;
            border-radius: 20px;
            box-shadow: 0 20px 40px rgba(0, 0, 0, 0.1);
            max-width: 450px;
        }
        h1 { color: #2c3e50; margin-bottom: 1rem; }
        p { color: #7f8c8d; }
    </style>
</head>
<body>
    <div class="container">
        <h1>Authentication Successful!</h1>
        <p>You have been successfully authenticated with AgbCloud CLI.</p>
        <p>You can now close this window and return to your terminal.</p>
    </div>
    <script>
        setTimeout(function() { window.close(); }, 3000);
    </script>
</body>
</html>"""


class _CallbackHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], owner: CallbackServer) -> None:
        self.owner = owner
        super().__init__(address, _CallbackHandler)


class _CallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect callback."""

    server: _CallbackHTTPServer

    def log_message(self, format: str, *args: object) -> None:
        logger.debug("callback server: " + format, *args)

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        if parsed.path == "/favicon.ico":
            self.send_response(204)
            self.end_headers()
            return
        if parsed.path != CALLBACK_PATH:
            self._send_text(404, "Not Found")
            return

        owner = self.server.owner
        if not owner._result.claim():
            self._send_text(409, "Callback already received")
            return

        params = parse_qs(parsed.query)
        code = params.get("code", [""])[0]
        # state is carried through for diagnostics only; it is not verified
        state = params.get("state", [None])[0]
        error = params.get("error", [None])[0]

        result = CallbackResult(error="Callback handler failed")
        try:
            if error:
                error_text = params.get("error_description", [error])[0]
                result = CallbackResult(state=state, error=error_text)
                self._send_text(400, f"Authentication failed: {error_text}")
            elif not code:
                result = CallbackResult(state=state, error=ERROR_MISSING_CODE)
                self._send_text(400, "No code")
            else:
                result = CallbackResult(code=code, state=state)
                self._send_html(SUCCESS_HTML)
        finally:
            owner._result.resolve(result)

        if result.success:
            owner._schedule_shutdown()

    def _send_text(self, status: int, message: str) -> None:
        body = message.encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_html(self, html: str) -> None:
        body = html.encode()
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class CallbackServer:
    """Short-lived HTTP server that captures one authorization code.

    The socket is bound and listening as soon as the object is constructed,
    so a browser may be pointed at it right after ``start()``.

    Example:
        >>> with CallbackServer("3000") as server:
        ...     server.start()
        ...     webbrowser.open(url)
        ...     result = server.wait(300)
    """

    def __init__(
        self,
        port: str,
        *,
        host: str = CALLBACK_HOST,
        grace_seconds: float = SHUTDOWN_GRACE_SECONDS,
    ) -> None:
        self.port = port
        self._grace_seconds = grace_seconds
        self._result: _OneShot[CallbackResult] = _OneShot()
        self._lock = threading.Lock()
        self._closed = False
        self._thread: threading.Thread | None = None
        self._shutdown_timer: threading.Timer | None = None
        self._server = _CallbackHTTPServer((host, int(port)), self)

    @property
    def server_address(self) -> tuple[str, int]:
        return self._server.server_address[:2]

    def start(self) -> None:
        """Begin serving requests on a background thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"agbcloud-callback-{self.port}",
            daemon=True,
        )
        self._thread.start()
        logger.debug("Callback server listening on %s:%s", *self.server_address)

    def wait(self, timeout: float = AUTH_TIMEOUT_SECONDS) -> CallbackResult:
        """Block until a callback arrives or ``timeout`` seconds elapse.

        On timeout the listening socket is closed before returning.
        """
        result = self._result.wait(timeout)
        if result is not None:
            return result

        if self._result.offer(CallbackResult(error=ERROR_AUTH_TIMEOUT, timed_out=True)):
            self._shutdown()
        # Either the timeout was recorded just now or a request claimed the
        # slot first and is about to resolve it.
        return self._result.wait()  # type: ignore[return-value]

    def _schedule_shutdown(self) -> None:
        timer = threading.Timer(self._grace_seconds, self._shutdown)
        timer.daemon = True
        self._shutdown_timer = timer
        timer.start()

    def _shutdown(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join(timeout=2)
        self._server.server_close()
        logger.debug("Callback server on port %s closed", self.port)

    def close(self) -> None:
        """Release the listening socket, letting a pending grace shutdown finish first."""
        timer = self._shutdown_timer
        if timer is not None:
            timer.join()
        self._shutdown()

    def __enter__(self) -> CallbackServer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def await_callback(
    port: str,
    timeout: float = AUTH_TIMEOUT_SECONDS,
    *,
    on_ready: Callable[[], None] | None = None,
    host: str = CALLBACK_HOST,
) -> CallbackResult:
    """Serve ``/callback`` on ``port`` until one request arrives or the deadline passes.

    Args:
        port: Port to bind.
        timeout: Seconds to wait for the browser redirect.
        on_ready: Called once the server is accepting connections, e.g. to
            open the browser.

    Raises:
        OSError: the port could not be bound.
    """
    with CallbackServer(port, host=host) as server:
        server.start()
        if on_ready is not None:
            on_ready()
        return server.wait(timeout)
