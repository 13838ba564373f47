"""Tests the HTTP API."""

from __future__ import annotations

import socket

import pytest
from fastapi.testclient import TestClient

from woody.api.server import classify_http_status, create_app, normalize_key, status_for_result_code
from woody.bridge import Bridge, request_from_parameters
from woody.pine.catalog import lookup
from woody.pine.common import (
    ConfigurationError,
    MalformedFrameError,
    NotConnectedError,
    ParameterError,
    PineConnectionError,
)
from woody.pine.messages import Answer
from woody.session import SessionManager


class FakeBridge:
    """Records the executed operations and answers with a fixed result."""

    def __init__(self, result: Answer | Exception | None = None):
        """Initialize the bridge.

        Args:
            result (Answer | Exception | None, optional): The answer to return, or the error to raise. Defaults to
                None, for a successful answer without payload.
        """
        self.result = result
        self.calls: list[tuple[str, dict[str, str]]] = []

    def execute(self, operation: str, parameters: dict[str, str]) -> Answer:
        """Validate the request like the real bridge does, and return the fixed result."""
        self.calls.append((operation, dict(parameters)))
        request = request_from_parameters(operation, parameters)

        if isinstance(self.result, Exception):
            raise self.result

        if self.result is None:
            return Answer(request.operation, 0)

        return self.result


def client_for(bridge) -> TestClient:
    """Create a test client for the API, with a given bridge."""
    return TestClient(create_app(bridge))


@pytest.mark.parametrize(
    ("key", "normalized"),
    [
        ("Woody-Request-Type", "woodyrequesttype"),
        ("woodyRequestType", "woodyrequesttype"),
        ("woody_address", "woodyaddress"),
        ("WOODY-SLOT", "woodyslot"),
    ],
)
def test_normalize_key(key: str, normalized: str) -> None:
    """Parameter and header names are compared without case, dashes and underscores.

    Args:
        key (str): The name.
        normalized (str): The normalized name.
    """
    assert normalize_key(key) == normalized


def test_status_for_result_code() -> None:
    """Result codes map to HTTP status codes."""
    assert status_for_result_code(0) == 200
    assert status_for_result_code(255) == 500
    assert status_for_result_code(1) == 501


def test_classify_http_status() -> None:
    """Errors map to HTTP status codes."""
    assert classify_http_status(ParameterError("bad")) == 400
    assert classify_http_status(NotConnectedError("none")) == 503
    assert classify_http_status(PineConnectionError("pcsx2", "/tmp/pcsx2.sock.28011")) == 502
    assert classify_http_status(TimeoutError()) == 502
    assert classify_http_status(ConfigurationError("broken")) == 500


def test_query_parameters() -> None:
    """Parameters from the query are passed without their prefix."""
    bridge = FakeBridge(Answer(lookup("read8"), 0, value=0x45))

    response = client_for(bridge).get("/?woodyRequestType=Read8&woodyAddress=0x35459C&woodyAddress=1&other=1")

    assert response.status_code == 200
    assert response.json() == {"resultCode": 0, "memoryValue": 0x45}
    assert bridge.calls == [("read8", {"address": "0x35459C"})]


def test_headers() -> None:
    """Headers take precedence over query parameters, on any path."""
    bridge = FakeBridge()

    response = client_for(bridge).get(
        "/any/path?woodyAddress=1",
        headers={"Woody-Request-Type": "Write8", "Woody-Address": "0x10", "Woody-Data": "0xFF"},
    )

    assert response.status_code == 200
    assert response.json() == {"resultCode": 0}
    assert bridge.calls == [("write8", {"address": "0x10", "data": "0xFF"})]


def test_form_parameters() -> None:
    """Form parameters of POST requests take precedence over query parameters."""
    bridge = FakeBridge()

    response = client_for(bridge).post("/?woodySlot=1", data={"woodyRequestType": "savestate", "woodySlot": "4"})

    assert response.status_code == 200
    assert bridge.calls == [("savestate", {"slot": "4"})]


@pytest.mark.parametrize(
    ("answer", "status"),
    [
        (Answer(lookup("loadstate"), 255), 500),
        (Answer(lookup("loadstate"), 7), 501),
    ],
)
def test_result_codes(answer: Answer, status: int) -> None:
    """Failed answers are returned with an error status.

    Args:
        answer (Answer): The answer of the bridge.
        status (int): The expected HTTP status.
    """
    response = client_for(FakeBridge(answer)).get("/?woodyRequestType=loadstate&woodySlot=1")

    assert response.status_code == status
    assert response.json() == {"resultCode": answer.result_code}


@pytest.mark.parametrize(
    ("path", "message"),
    [
        ("/", "no PINE request type found in HTTP request"),
        ("/?woodyRequestType=", "no PINE request type found in HTTP request"),
        ("/?woodyRequestType=peek", "unknown PINE operation 'peek'"),
        ("/?woodyRequestType=read8", "no address provided for read8 PINE request"),
        ("/?woodyRequestType=read8&woodyAddress=zz", "unable to parse address zz for read8 PINE request"),
    ],
)
def test_bad_requests(path: str, message: str) -> None:
    """Requests that cannot be translated are rejected with status 400.

    Args:
        path (str): The request path.
        message (str): The expected start of the error message.
    """
    response = client_for(FakeBridge()).get(path)

    assert response.status_code == 400
    assert response.json()["errMessage"].startswith(message)


@pytest.mark.parametrize(
    ("error", "status", "message"),
    [
        (NotConnectedError("not connected to any emulator"), 503, "not connected to any emulator"),
        (
            MalformedFrameError("version", b"\x05\x00\x00\x00\x00", ">= 10"),
            502,
            "error while converting the answer for the version PINE request",
        ),
        (ConnectionResetError("reset"), 502, "error while sending the version PINE request: reset"),
        (PineConnectionError("pcsx2", "/tmp/pcsx2.sock.28011"), 502, "error while sending the version PINE request"),
    ],
)
def test_exchange_errors(error: Exception, status: int, message: str) -> None:
    """Errors of the exchange are reported with a JSON error message.

    Args:
        error (Exception): The error that the bridge raises.
        status (int): The expected HTTP status.
        message (str): The expected start of the error message.
    """
    response = client_for(FakeBridge(error)).get("/?woodyRequestType=version")

    assert response.status_code == status
    assert list(response.json()) == ["errMessage"]
    assert response.json()["errMessage"].startswith(message)


@pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="Unix sockets are not available.")
def test_end_to_end(resolve_in, start) -> None:
    """Requests pass through the API and the bridge, to a mockup emulator."""
    emulator = start(resolve_in("pcsx2").address)
    session = SessionManager(resolve_fn=resolve_in)
    session.connect()
    client = client_for(Bridge(session))

    response = client.get("/?woodyRequestType=write16&woodyAddress=0x20&woodyData=0x1234")
    assert (response.status_code, response.json()) == (200, {"resultCode": 0})

    response = client.post("/", headers={"Woody-Request-Type": "read16", "Woody-Address": "0x20"})
    assert (response.status_code, response.json()) == (200, {"resultCode": 0, "memoryValue": 0x1234})

    response = client.get("/?woodyRequestType=title")
    assert (response.status_code, response.json()) == (200, {"resultCode": 0, "title": "Ratchet & Clank"})

    assert emulator.state.memory[0x20] == 0x34
