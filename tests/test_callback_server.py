"""Tests for the OAuth callback server, using real loopback sockets."""

from __future__ import annotations

import socket
import threading
import time

import httpx
import pytest

from agbcloud.auth.callback_server import CallbackServer, _OneShot, await_callback
from agbcloud.auth.constants import ERROR_AUTH_TIMEOUT, ERROR_MISSING_CODE


def _get(port: str, path: str, **kwargs) -> httpx.Response:
    return httpx.get(f"http://127.0.0.1:{port}{path}", trust_env=False, **kwargs)


class TestOneShot:
    def test_first_offer_wins(self):
        slot: _OneShot[str] = _OneShot()
        assert slot.offer("first")
        assert not slot.offer("second")
        assert slot.wait(0) == "first"

    def test_wait_times_out_without_value(self):
        slot: _OneShot[str] = _OneShot()
        assert slot.wait(0.01) is None

    def test_only_one_of_many_racing_writers_wins(self):
        slot: _OneShot[int] = _OneShot()
        winners = []

        def writer(n):
            if slot.offer(n):
                winners.append(n)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(winners) == 1
        assert slot.wait(0) == winners[0]


class TestCallbackServer:
    def test_code_is_captured_and_success_page_served(self, free_port):
        port = free_port()
        with CallbackServer(port, grace_seconds=0.05) as server:
            server.start()
            response = _get(port, "/callback?code=abc123&state=xyz")
            result = server.wait(5)

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Authentication Successful" in response.text
        assert result.success
        assert result.code == "abc123"
        assert result.state == "xyz"
        assert not result.timed_out

    def test_missing_code_is_terminal_failure(self, free_port):
        port = free_port()
        with CallbackServer(port) as server:
            server.start()
            response = _get(port, "/callback?state=xyz")
            result = server.wait(5)

        assert response.status_code == 400
        assert not result.success
        assert not result.timed_out
        assert result.error == ERROR_MISSING_CODE

    def test_empty_code_counts_as_missing(self, free_port):
        port = free_port()
        with CallbackServer(port) as server:
            server.start()
            response = _get(port, "/callback?code=")
            result = server.wait(5)

        assert response.status_code == 400
        assert result.error == ERROR_MISSING_CODE

    def test_provider_error_is_reported(self, free_port):
        port = free_port()
        with CallbackServer(port) as server:
            server.start()
            response = _get(port, "/callback?error=access_denied&error_description=User+cancelled")
            result = server.wait(5)

        assert response.status_code == 400
        assert result.error == "User cancelled"

    def test_other_paths_do_not_resolve(self, free_port):
        port = free_port()
        with CallbackServer(port) as server:
            server.start()
            assert _get(port, "/favicon.ico").status_code == 204
            assert _get(port, "/other").status_code == 404
            result = server.wait(0.2)

        assert result.timed_out

    def test_second_request_is_rejected(self, free_port):
        port = free_port()
        with CallbackServer(port, grace_seconds=1.0) as server:
            server.start()
            first = _get(port, "/callback?code=first")
            second = _get(port, "/callback?code=second")
            result = server.wait(5)

        assert first.status_code == 200
        assert second.status_code == 409
        assert result.code == "first"

    def test_concurrent_requests_resolve_once(self, free_port):
        port = free_port()
        responses = {}

        def hit(code):
            responses[code] = _get(port, f"/callback?code={code}").status_code

        with CallbackServer(port, grace_seconds=1.0) as server:
            server.start()
            threads = [threading.Thread(target=hit, args=(c,)) for c in ("one", "two", "three")]
            for t in threads:
                t.start()
            for t in threads:
                t.join()
            result = server.wait(5)
            # The result is stable once captured
            assert server.wait(0) == result

        assert sorted(responses.values()) == [200, 409, 409]
        winner = next(code for code, status in responses.items() if status == 200)
        assert result.code == winner

    def test_timeout_releases_port(self, free_port):
        port = free_port()
        with CallbackServer(port) as server:
            server.start()
            started = time.monotonic()
            result = server.wait(0.2)
            elapsed = time.monotonic() - started

        assert result.timed_out
        assert result.error == ERROR_AUTH_TIMEOUT
        assert elapsed < 3

        # The socket is gone, so a plain bind on the same port succeeds.
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", int(port)))

    def test_server_closed_after_success(self, free_port):
        port = free_port()
        with CallbackServer(port, grace_seconds=0.05) as server:
            server.start()
            _get(port, "/callback?code=abc")
            server.wait(5)

        with pytest.raises(httpx.ConnectError):
            _get(port, "/callback?code=late", timeout=1)

    def test_exception_in_block_releases_port(self, free_port):
        port = free_port()

        with pytest.raises(KeyboardInterrupt):
            with CallbackServer(port) as server:
                server.start()
                raise KeyboardInterrupt

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", int(port)))

        # a fresh server can take the port over
        with CallbackServer(port) as server:
            server.start()
            assert _get(port, "/callback?code=again").status_code == 200

    def test_bind_failure_raises(self, occupied_port):
        with pytest.raises(OSError):
            CallbackServer(occupied_port)


class TestAwaitCallback:
    def test_on_ready_runs_after_listening(self, free_port):
        port = free_port()
        statuses = []

        def browser():
            statuses.append(_get(port, "/callback?code=from-browser").status_code)

        result = await_callback(port, timeout=5, on_ready=browser)

        assert statuses == [200]
        assert result.code == "from-browser"

    def test_on_ready_failure_releases_port(self, free_port):
        port = free_port()

        def browser():
            raise RuntimeError("browser crashed")

        with pytest.raises(RuntimeError, match="browser crashed"):
            await_callback(port, timeout=5, on_ready=browser)

        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", int(port)))

    def test_timeout(self, free_port):
        result = await_callback(free_port(), timeout=0.1)
        assert result.timed_out
        assert not result.success
