"""The session handling of woody.

The session manager keeps at most one active connection to an emulator. Without one, it probes all configured targets
on their default slots, and commits to the first target that accepts a connection. When a call site reports a failed
exchange, the active connection is dropped and probing starts over.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from collections.abc import Sequence
from enum import Enum

from retry.api import retry_call

from woody.pine.common import NoTargetReachableError
from woody.pine.common import NotConnectedError
from woody.pine.common import PineConnectionError
from woody.pine.common import PineError
from woody.pine.common import SessionClosedError
from woody.transport.connection import DEFAULT_TIMEOUT
from woody.transport.connection import Connection
from woody.transport.resolver import TransportDescriptor
from woody.transport.resolver import known_target_names
from woody.transport.resolver import resolve

# A logger for this module
logger = logging.getLogger(__name__)

# Seconds between two rounds of probing, when no target was reachable.
DEFAULT_PROBE_INTERVAL = 5.0


class SessionState(Enum):
    """The states of the session manager."""

    DISCONNECTED = "disconnected"
    PROBING = "probing"
    CONNECTED = "connected"


class ConnectionSlot:
    """Holds the active connection, if any."""

    def __init__(self):
        """Initialize an empty slot."""
        self._lock = threading.Lock()
        self._connection: Connection | None = None

    def get(self) -> Connection | None:
        """The active connection, or None."""
        with self._lock:
            return self._connection

    def put(self, connection: Connection):
        """Make a connection the active one.

        Args:
            connection (Connection): The new active connection.
        """
        with self._lock:
            self._connection = connection

    def clear(self, expected: Connection | None = None) -> bool:
        """Remove the active connection.

        Args:
            expected (Connection | None, optional): Only clear the slot if this connection is still the active one.
                Defaults to None, for clearing unconditionally.

        Returns:
            bool: True, if a connection was removed.
        """
        with self._lock:
            if self._connection is None:
                return False

            if expected is not None and self._connection is not expected:
                return False

            self._connection = None
            return True


class SessionManager:
    """Selects an emulator target and keeps the connection to it."""

    def __init__(
        self,
        targets: Sequence[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        probe_interval: float = DEFAULT_PROBE_INTERVAL,
        resolve_fn: Callable[[str, int], TransportDescriptor] = resolve,
    ):
        """Initialize the session manager in the disconnected state.

        Args:
            targets (Sequence[str] | None, optional): The targets to probe, in order. Defaults to None, for all known
                targets.
            timeout (float, optional): The deadline of single exchanges in seconds. Defaults to DEFAULT_TIMEOUT.
            probe_interval (float, optional): Seconds between probing rounds. Defaults to DEFAULT_PROBE_INTERVAL.
            resolve_fn (Callable[[str, int], TransportDescriptor], optional): The function to use for resolving
                targets to transports. Defaults to ``resolve``.
        """
        self.targets = list(targets) if targets is not None else known_target_names()
        self.timeout = timeout
        self.probe_interval = probe_interval
        self._resolve = resolve_fn

        # Shared by all connections, so that exchanges never overlap, even while switching targets.
        self.exchange_lock = threading.Lock()

        self.slot = ConnectionSlot()

        self._state_lock = threading.Lock()
        self._state = SessionState.DISCONNECTED
        self._probing_target: str | None = None

        # Set, whenever the active connection is lost.
        self._lost = threading.Event()
        self._closing = threading.Event()
        self._active = False
        self._supervisor_thread: threading.Thread | None = None

    @property
    def state(self) -> SessionState:
        """The current state."""
        with self._state_lock:
            return self._state

    @property
    def target(self) -> str | None:
        """The target that is being probed, or is connected. None, while disconnected."""
        with self._state_lock:
            if self._state == SessionState.PROBING:
                return self._probing_target

        connection = self.slot.get()
        return connection.target if connection is not None else None

    def _set_state(self, state: SessionState, target: str | None = None):
        with self._state_lock:
            self._state = state
            self._probing_target = target

    def active_connection(self) -> Connection:
        """Get the active connection.

        Raises:
            NotConnectedError: If no emulator is connected.

        Returns:
            Connection: The active connection.
        """
        connection = self.slot.get()

        if connection is None:
            raise NotConnectedError("not connected to any emulator")

        return connection

    def connect(self) -> Connection:
        """Probe all targets once, and commit to the first that accepts a connection.

        Raises:
            NoTargetReachableError: If no target is reachable.

        Returns:
            Connection: The new active connection.
        """
        logger.info("Trying to connect to known emulators on their default slots.")

        for target in self.targets:
            if self._closing.is_set():
                self._set_state(SessionState.DISCONNECTED)
                raise SessionClosedError("the session was closed while probing")

            self._set_state(SessionState.PROBING, target)
            logger.info("Trying to connect to '%s'.", target)

            try:
                # Resolution errors are configuration errors, which probing again cannot fix.
                connection = Connection(self._resolve(target, 0), lock=self.exchange_lock, timeout=self.timeout)

            except PineError:
                self._set_state(SessionState.DISCONNECTED)
                raise

            try:
                connection.probe()

            except PineConnectionError as e:
                logger.info("Test connection for target '%s' failed (%s). Continuing to next target.", target, e)
                continue

            logger.info("Test connection for target '%s' succeeded.", target)

            self._lost.clear()

            with self._state_lock:
                self.slot.put(connection)
                self._state = SessionState.CONNECTED
                self._probing_target = None

            return connection

        self._set_state(SessionState.DISCONNECTED)
        raise NoTargetReachableError(f"could not connect to any of the targets {self.targets}")

    def wait_for_connection(self) -> Connection:
        """Probe all targets, until one of them accepts a connection.

        Returns:
            Connection: The new active connection.
        """
        return retry_call(
            self.connect, exceptions=NoTargetReachableError, tries=-1, delay=self.probe_interval, logger=logger
        )

    def report_failure(self, connection: Connection, error: BaseException | None = None):
        """Drop a connection, after an exchange on it failed.

        Reports about connections that are no longer active are ignored.

        Args:
            connection (Connection): The connection that the exchange used.
            error (BaseException | None, optional): The error that occurred. Defaults to None.
        """
        with self._state_lock:
            if not self.slot.clear(expected=connection):
                return

            self._state = SessionState.DISCONNECTED

        logger.warning("Lost the connection to '%s' (%s).", connection.target, error)
        self._lost.set()

    def run(self, on_error: Callable[[PineError], None] | None = None):
        """Keep a connection alive, until ``close`` is called.

        Targets that cannot be resolved stop the supervisor, since probing again would not help.

        Args:
            on_error (Callable[[PineError], None] | None, optional): Called with the error that stopped the
                supervisor. Defaults to None.
        """
        self._active = True

        try:
            while self._active:
                if self.slot.get() is None:
                    self.wait_for_connection()

                self._lost.wait()

        except SessionClosedError:
            pass

        except PineError as e:
            self._active = False
            logger.error("Session supervisor stopped: %s", e)

            if on_error is not None:
                on_error(e)

        logger.info("Session supervisor terminated.")

    def start(self, on_error: Callable[[PineError], None] | None = None) -> threading.Thread:
        """Run the supervisor in a daemon thread.

        Args:
            on_error (Callable[[PineError], None] | None, optional): Called, if the supervisor stops on an error.
                Defaults to None.

        Returns:
            threading.Thread: The supervisor thread.
        """
        self._closing.clear()
        self._supervisor_thread = threading.Thread(
            target=self.run, args=(on_error,), name="Session supervisor", daemon=True
        )
        self._supervisor_thread.start()

        return self._supervisor_thread

    def close(self):
        """Stop the supervisor and drop the active connection.

        A supervisor that is pausing between probing rounds stops after the pause. Waits for at most one probing
        interval and one exchange timeout.
        """
        self._active = False
        self._closing.set()
        self._lost.set()

        thread = self._supervisor_thread

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.probe_interval + self.timeout)

            if thread.is_alive():
                logger.warning("Session supervisor did not terminate in time.")

        self.slot.clear()
        self._set_state(SessionState.DISCONNECTED)
