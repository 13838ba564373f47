"""Tests the bridge, which executes operations by name over the session's connection."""

import socket

import pytest

from tests.mock.emulator import stop_emulator
from woody.bridge import Bridge, request_from_parameters
from woody.pine.common import (
    MalformedFrameError,
    NotConnectedError,
    ParameterError,
    PineConnectionError,
    UnknownOperationError,
)
from woody.session import SessionManager, SessionState

pytestmark = pytest.mark.skipif(not hasattr(socket, "AF_UNIX"), reason="Unix sockets are not available.")


@pytest.fixture(name="connected")
def connected_bridge(resolve_in, start):
    """Provides a bridge to a running mockup emulator, and the emulator itself."""
    emulator = start(resolve_in("pcsx2").address)
    session = SessionManager(resolve_fn=resolve_in)
    session.connect()

    return Bridge(session), emulator


@pytest.mark.parametrize(
    ("operation", "parameters", "fields"),
    [
        ("read32", {"address": "0x35459C"}, (0x35459C, None, None)),
        ("Write16", {"address": "16", "data": "0xBEEF", "slot": "9"}, (16, 0xBEEF, None)),
        ("savestate", {"slot": "3", "address": "not used"}, (None, None, 3)),
        ("status", {}, (None, None, None)),
    ],
)
def test_request_from_parameters(operation: str, parameters: dict, fields: tuple) -> None:
    """Parameters are parsed as needed by the operation, others are ignored.

    Args:
        operation (str): The operation name.
        parameters (dict): The textual parameters.
        fields (tuple): The expected address, data and slot.
    """
    request = request_from_parameters(operation, parameters)

    assert (request.address, request.data, request.slot) == fields


@pytest.mark.parametrize(
    ("operation", "parameters", "message"),
    [
        ("read8", {}, "no address provided for read8 PINE request"),
        ("write8", {"address": "1"}, "no data provided for write8 PINE request"),
        ("write8", {"address": "1", "data": "256"}, "unable to parse data 256 for write8 PINE request"),
        ("read64", {"address": "0x1FFFFFFFF"}, "unable to parse address 0x1FFFFFFFF for read64 PINE request"),
        ("loadstate", {"slot": "-1"}, "unable to parse slot -1 for loadstate PINE request"),
        ("read16", {"address": "abc"}, "unable to parse address abc for read16 PINE request"),
        ("read8", {"address": "\u0661\u0662"}, "unable to parse address \u0661\u0662 for read8 PINE request"),
    ],
)
def test_invalid_parameters(operation: str, parameters: dict, message: str) -> None:
    """Missing and invalid parameters are reported with the operation name.

    Args:
        operation (str): The operation name.
        parameters (dict): The textual parameters.
        message (str): The expected start of the error message.
    """
    with pytest.raises(ParameterError) as info:
        request_from_parameters(operation, parameters)

    assert str(info.value).startswith(message)


def test_unknown_operation(connected) -> None:
    """Unknown operations are rejected before anything is sent."""
    bridge, emulator = connected

    with pytest.raises(UnknownOperationError):
        bridge.execute("peek", {})

    assert not emulator.requests


def test_write_then_read(connected) -> None:
    """Written memory can be read back."""
    bridge, emulator = connected

    assert bridge.execute("write32", {"address": "0x100", "data": "0xDEADBEEF"}).succeeded
    assert emulator.state.memory[0x100] == 0xEF

    assert bridge.execute("read32", {"address": "0x100"}).as_dict() == {"resultCode": 0, "memoryValue": 0xDEADBEEF}
    assert bridge.execute("read8", {"address": "0x103"}).value == 0xDE


def test_strings_and_status(connected) -> None:
    """String and status answers are decoded."""
    bridge, emulator = connected
    emulator.state.status = 1

    assert bridge.execute("version", {}).as_dict() == {"resultCode": 0, "version": "PCSX2 1.7.5"}
    assert bridge.execute("title", {}).text == "Ratchet & Clank"
    assert bridge.execute("id", {}).text == "SCUS-97199"
    assert bridge.execute("uuid", {}).text == "e7f7b7a1"
    assert bridge.execute("gameversion", {}).as_dict() == {"resultCode": 0, "gameVersion": "1.00"}
    assert bridge.execute("status", {}).as_dict() == {"resultCode": 0, "status": 1}


def test_save_states(connected) -> None:
    """Loading a state that was never saved fails, with result code 255."""
    bridge, emulator = connected

    assert bridge.execute("loadstate", {"slot": "2"}).result_code == 255

    bridge.execute("write8", {"address": "5", "data": "7"})
    assert bridge.execute("savestate", {"slot": "2"}).succeeded

    bridge.execute("write8", {"address": "5", "data": "9"})
    assert bridge.execute("loadstate", {"slot": "2"}).succeeded
    assert emulator.state.memory[5] == 7


def test_not_connected(resolve_in) -> None:
    """Without a connection, nothing can be executed."""
    bridge = Bridge(SessionManager(resolve_fn=resolve_in))

    with pytest.raises(NotConnectedError):
        bridge.execute("version", {})


def test_lost_emulator(connected) -> None:
    """A transport failure drops the connection of the session."""
    bridge, emulator = connected
    stop_emulator(emulator)

    with pytest.raises(PineConnectionError):
        bridge.execute("version", {})

    assert bridge.session.state == SessionState.DISCONNECTED

    with pytest.raises(NotConnectedError):
        bridge.execute("version", {})


def test_malformed_answer_keeps_connection(connected) -> None:
    """Answers that cannot be decoded do not affect the connection."""
    bridge, emulator = connected
    emulator.answer_fn = lambda request: bytes.fromhex("07 00 00 00 00 45 00")

    with pytest.raises(MalformedFrameError):
        bridge.execute("read8", {"address": "0"})

    assert bridge.session.state == SessionState.CONNECTED
