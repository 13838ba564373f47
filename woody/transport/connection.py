"""This module exchanges PINE frames with an emulator.

Every exchange uses its own socket: connect, write the request, half-close, read until the emulator closes, close.
"""

from __future__ import annotations

import logging
import socket
import threading
import time

from .resolver import Address
from .resolver import TransportDescriptor
from .resolver import TransportKind
from woody.helper.conversion import hex_dump
from woody.pine.common import PineConnectionError

# A logger for this module
logger = logging.getLogger(__name__)

# Seems like a long time, but a safe timeout is needed for slow emulators.
DEFAULT_TIMEOUT = 15.0

RECEIVE_SIZE = 4096


class Deadline:
    """An absolute point in time, after which socket operations time out."""

    def __init__(self, timeout: float):
        """Start the deadline.

        Args:
            timeout (float): Seconds from now, until the deadline expires.
        """
        self._expiry = time.monotonic() + timeout

    @property
    def remaining(self) -> float:
        """Seconds until the deadline expires.

        Raises:
            TimeoutError: If the deadline has already expired.
        """
        remaining = self._expiry - time.monotonic()

        if remaining <= 0:
            raise TimeoutError("PINE exchange deadline exceeded")

        return remaining

    def apply(self, sock: socket.socket):
        """Limit the next blocking operation on a socket to the remaining time.

        Args:
            sock (socket.socket): The socket.
        """
        sock.settimeout(self.remaining)


class Connection:
    """A logical connection to one emulator target.

    No socket is kept open between exchanges. All connections that share a lock never have more than one exchange in
    flight.
    """

    def __init__(
        self,
        descriptor: TransportDescriptor,
        lock: threading.Lock | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """Initialize the connection.

        Args:
            descriptor (TransportDescriptor): The resolved transport of the target.
            lock (threading.Lock | None, optional): The lock that serializes exchanges. Defaults to None, which
                creates a lock for this connection only.
            timeout (float, optional): The deadline for a complete exchange in seconds. Defaults to DEFAULT_TIMEOUT.
        """
        self.descriptor = descriptor
        self.timeout = timeout
        self._lock = lock if lock is not None else threading.Lock()

    @property
    def target(self) -> str:
        """The name of the connected target."""
        return self.descriptor.target

    def __repr__(self) -> str:
        """Representation with the target and its primary address."""
        return f"Connection({self.descriptor.target!r}, {self.descriptor.address!r})"

    def _dial(self, address: Address) -> socket.socket:
        """Open a stream socket to a single address.

        Args:
            address (Address): The socket path, or (host, port) tuple.

        Returns:
            socket.socket: The connected socket.
        """
        if self.descriptor.kind == TransportKind.TCP:
            return socket.create_connection(address, timeout=self.timeout)  # type: ignore[arg-type]

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)

        try:
            sock.settimeout(self.timeout)
            sock.connect(address)

        except OSError:
            sock.close()
            raise

        return sock

    def connect(self) -> socket.socket:
        """Connect to the emulator, trying the fallback address if the primary one fails.

        Raises:
            PineConnectionError: If no candidate address can be connected to.

        Returns:
            socket.socket: The connected socket.
        """
        for address in self.descriptor.candidates:
            try:
                sock = self._dial(address)

            except OSError as e:
                logger.debug("Could not connect to %r: %s", address, e)

            else:
                logger.debug("Connected to %r.", address)
                return sock

        raise PineConnectionError(self.descriptor.target, self.descriptor.address)

    def probe(self):
        """Check that the emulator accepts connections, without exchanging any data.

        Raises:
            PineConnectionError: If the emulator cannot be reached.
        """
        sock = self.connect()
        sock.close()

    def send(self, request: bytes) -> bytes:
        """Send a request frame and return the complete answer.

        Args:
            request (bytes): The request frame.

        Raises:
            PineConnectionError: If the emulator cannot be reached.
            OSError: If writing or reading fails, including timeouts.

        Returns:
            bytes: Everything the emulator sent before closing its side of the connection.
        """
        # Only one exchange at a time.
        with self._lock:
            logger.debug("Sending %d request bytes to '%s': %s", len(request), self.target, hex_dump(request))

            with self.connect() as sock:
                deadline = Deadline(self.timeout)

                deadline.apply(sock)
                sock.sendall(request)

                # Signal the end of the request, while keeping the read side open.
                sock.shutdown(socket.SHUT_WR)

                answer = bytearray()

                while True:
                    deadline.apply(sock)
                    received = sock.recv(RECEIVE_SIZE)

                    if not received:
                        break

                    answer.extend(received)

            logger.debug("Received %d answer bytes from '%s': %s", len(answer), self.target, hex_dump(answer))

            return bytes(answer)
