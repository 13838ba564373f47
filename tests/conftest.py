"""Fixtures that are shared by the tests."""

import tempfile

import pytest

from tests.mock.emulator import EmulatorServer, start_emulator, stop_emulator
from woody.transport.resolver import TransportDescriptor, resolve


@pytest.fixture(name="socket_dir")
def socket_directory():
    """Provides a runtime directory for Unix sockets.

    Socket paths are limited to about 100 characters, so the directory is created in /tmp directly.
    """
    with tempfile.TemporaryDirectory(prefix="woody", dir="/tmp") as directory:
        yield directory


@pytest.fixture(name="resolve_in")
def resolve_in_socket_dir(socket_dir: str):
    """Provides a resolver that places the sockets of all targets in the socket directory."""

    def resolve_fn(target: str, slot: int = 0) -> TransportDescriptor:
        return resolve(target, slot, system="Linux", environ={"XDG_RUNTIME_DIR": socket_dir})

    return resolve_fn


@pytest.fixture(name="emulators")
def running_emulators():
    """Provides a list that stops every emulator that a test appends to it."""
    servers: list[EmulatorServer] = []

    yield servers

    for server in servers:
        stop_emulator(server)


@pytest.fixture(name="start")
def emulator_starter(emulators: list):
    """Provides a function that starts an emulator, which is stopped after the test."""

    def start_fn(address, **kwargs) -> EmulatorServer:
        server = start_emulator(address, **kwargs)
        emulators.append(server)
        return server

    return start_fn
