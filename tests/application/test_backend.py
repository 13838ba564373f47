"""Tests for the backend service."""

from __future__ import annotations

import json
import socket
import time
import urllib.error
import urllib.request
from pathlib import Path

import pytest

from woody.application.backend import BackendService
from woody.helper.settings import WoodySettings
from woody.pine.common import UnknownTargetError
from woody.session import SessionManager, SessionState

pytestmark = pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="Unix sockets are not available.")


@pytest.fixture(name="settings")
def woody_settings(tmp_path: Path):
    """Provides settings for integration tests, with the API on a free port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        port = probe.getsockname()[1]

    path = tmp_path / "config.yaml"
    path.write_text(f"api:\n  host: 127.0.0.1\n  port: {port}\npine:\n  probe_interval: 0.05\n", encoding="utf8")

    return WoodySettings(path)


def get(backend: BackendService, query: str) -> tuple[int, dict]:
    """Send a GET request to the API of a backend.

    Args:
        backend (BackendService): The backend.
        query (str): The query string.

    Returns:
        tuple[int, dict]: The HTTP status and the decoded JSON body.
    """
    url = f"http://127.0.0.1:{backend.settings.api_address[1]}/?{query}"

    try:
        with urllib.request.urlopen(url, timeout=5) as response:
            return response.status, json.loads(response.read())

    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def wait_until(condition, message: str):
    """Wait up to five seconds for a condition to hold."""
    end = time.monotonic() + 5.0

    while not condition():
        assert time.monotonic() < end, message
        time.sleep(0.01)


def test_backend_service(settings: WoodySettings, resolve_in, start) -> None:
    """Integration test for the woody backend service.

    The API is available right away, and answers requests as soon as an emulator was found.
    """
    session = SessionManager(
        targets=settings.targets, timeout=settings.timeout, probe_interval=settings.probe_interval, resolve_fn=resolve_in
    )
    backend = BackendService(settings, session=session)

    try:
        wait_until(lambda: backend.api_server.started, "API server did not start in time.")

        status, body = get(backend, "woodyRequestType=version")

        assert status == 503
        assert "errMessage" in body

        emulator = start(resolve_in("rpcs3").address)
        emulator.state.version = "RPCS3 0.0.29"

        wait_until(lambda: session.state == SessionState.CONNECTED, "Backend did not connect in time.")

        assert get(backend, "woodyRequestType=version") == (200, {"resultCode": 0, "version": "RPCS3 0.0.29"})
        assert session.target == "rpcs3"

    finally:
        backend.close()

    assert not backend.api_server_worker_thread.is_alive()


def test_backend_stops_on_session_errors(settings: WoodySettings, resolve_in) -> None:
    """Targets that cannot be resolved shut the API server down."""
    session = SessionManager(targets=["duckstation"], probe_interval=0.05, resolve_fn=resolve_in)
    backend = BackendService(settings, session=session)

    try:
        wait_until(lambda: not backend.api_server_worker_thread.is_alive(), "API server did not stop in time.")

        assert isinstance(backend.session_error, UnknownTargetError)

    finally:
        backend.close()

    assert session.state == SessionState.DISCONNECTED
