"""Resolution of emulator targets to transport addresses.

Depending on the platform, emulators listen on a loopback TCP port (Windows), or on a Unix domain socket within a
runtime directory (all others). The naming follows the PINE standard draft at
https://projects.govanify.com/govanify/pine/-/blob/3298a7dac42b2385a378720bf705fcd6a2eb553f/standard/draft.dtd
"""

from __future__ import annotations

import logging
import os
import platform
import posixpath
import socket
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Union

from woody.pine.common import InvalidTargetError
from woody.pine.common import UnknownTargetError
from woody.pine.common import UnsupportedPlatformError

# A logger for this module
logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"
FALLBACK_SOCKET_DIRECTORY = "/tmp"

# Runtime directory environment variables, by platform.
RUNTIME_DIRECTORY_VARIABLES = {
    "Linux": "XDG_RUNTIME_DIR",
    "Darwin": "TMPDIR",
}

MAX_SLOT = 65535

Address = Union[str, tuple[str, int]]


@dataclass(frozen=True)
class Target:
    """An emulator that speaks PINE."""

    name: str

    # The slot that the emulator uses, unless configured otherwise.
    default_slot: int


PCSX2 = Target("pcsx2", 28011)  # pcsx2/PINE.h in PCSX2
RPCS3 = Target("rpcs3", 28012)  # rpcs3/Emu/IPC_config.h in RPCS3

# All known targets, in the order in which they are probed.
KNOWN_TARGETS: tuple[Target, ...] = (PCSX2, RPCS3)

_TARGETS_BY_NAME: dict[str, Target] = {target.name: target for target in KNOWN_TARGETS}


def known_target_names() -> list[str]:
    """The names of all known targets, in probing order."""
    return [target.name for target in KNOWN_TARGETS]


def get_target(name: str) -> Target:
    """Find a known target by its name.

    Args:
        name (str): The name of the target.

    Raises:
        UnknownTargetError: If the target is not known.

    Returns:
        Target: The target.
    """
    try:
        return _TARGETS_BY_NAME[name]

    except KeyError as e:
        raise UnknownTargetError(
            f"unknown target '{name}' when finding the slot for the target, supported values are "
            f"{known_target_names()}"
        ) from e


class TransportKind(Enum):
    """The kind of transport to use for reaching an emulator."""

    UNIX_SOCKET = "unix"
    TCP = "tcp"


@dataclass(frozen=True)
class TransportDescriptor:
    """Resolved connection parameters for one target and slot."""

    target: str
    slot: int
    kind: TransportKind

    # A socket path, or a (host, port) tuple.
    address: Address

    # The socket path without the slot suffix, only for Unix sockets.
    fallback_address: str | None = None

    @property
    def candidates(self) -> list[Address]:
        """All addresses to dial, in order."""
        if self.fallback_address is None:
            return [self.address]

        return [self.address, self.fallback_address]


def find_socket_path(target: str, slot: int, system: str, environ: Mapping[str, str]) -> str:
    """Find the Unix socket path of a target.

    The slot is always appended, even though the standard leaves it out on the default slot. Emulators are not
    consistent about this, so the slot-less name is tried when connecting instead. The emulator may not be running at
    this point, so it is not possible to check which file exists.

    Args:
        target (str): The name of the target.
        slot (int): The slot number.
        system (str): The platform name, as returned by ``platform.system()``.
        environ (Mapping[str, str]): The environment variables to consider.

    Returns:
        str: The socket path, including the slot suffix.
    """
    directory = FALLBACK_SOCKET_DIRECTORY
    variable = RUNTIME_DIRECTORY_VARIABLES.get(system)

    if variable is not None and environ.get(variable):
        directory = environ[variable]

    return posixpath.join(directory, f"{target}.sock.{slot}")


def strip_slot(path: str) -> str:
    """Remove the trailing slot suffix from a socket path, e.g. ``/tmp/pcsx2.sock.28011`` to ``/tmp/pcsx2.sock``.

    Args:
        path (str): The socket path with a slot suffix.

    Returns:
        str: The socket path without the slot suffix.
    """
    return path[: path.rfind(".")]


def resolve(
    target: str,
    slot: int = 0,
    system: str | None = None,
    environ: Mapping[str, str] | None = None,
) -> TransportDescriptor:
    """Determine the transport for a target and slot.

    Args:
        target (str): The name of the target.
        slot (int, optional): The slot. Defaults to 0, which selects the target's default slot.
        system (str | None, optional): The platform name, as returned by ``platform.system()``. Defaults to None,
            for the running platform.
        environ (Mapping[str, str] | None, optional): The environment variables. Defaults to None, for the process
            environment.

    Raises:
        InvalidTargetError: If the target name is empty.
        UnknownTargetError: If no slot was provided and the target is unknown.
        UnsupportedPlatformError: If no transport kind is available on the platform.

    Returns:
        TransportDescriptor: The resolved transport.
    """
    if not target:
        raise InvalidTargetError("empty string provided for the target name")

    if slot == 0:
        slot = get_target(target).default_slot

    if not 0 < slot <= MAX_SLOT:
        raise InvalidTargetError(f"slot {slot} of target '{target}' is outside of the valid range 1..{MAX_SLOT}")

    if system is None:
        system = platform.system()

    if environ is None:
        environ = os.environ

    if system == "Windows":
        descriptor = TransportDescriptor(target, slot, TransportKind.TCP, (LOOPBACK_HOST, slot))

    elif hasattr(socket, "AF_UNIX"):
        path = find_socket_path(target, slot, system, environ)
        descriptor = TransportDescriptor(target, slot, TransportKind.UNIX_SOCKET, path, strip_slot(path))

    else:
        raise UnsupportedPlatformError(f"no PINE transport is available on the platform '{system}'")

    logger.debug("Resolved target '%s' on slot %d to %s.", target, slot, descriptor.candidates)

    return descriptor
