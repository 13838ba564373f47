"""Exceptions that are shared by the PINE codec, the transports and the session handling."""

from __future__ import annotations

from collections.abc import Collection


class PineError(Exception):
    """Base class for all errors that woody raises."""


class ConfigurationError(PineError):
    """The settings of the application are invalid."""


class InvalidTargetError(PineError, ValueError):
    """An empty or otherwise unusable target name was provided."""


class UnknownTargetError(PineError, KeyError):
    """The target is not one of the known emulators."""

    def __str__(self) -> str:
        """Avoid the quoting that ``KeyError`` applies to its message."""
        return str(self.args[0])


class UnsupportedPlatformError(PineError):
    """No transport kind can be determined for the host platform."""


class UnknownOperationError(PineError, KeyError):
    """The operation name does not belong to any PINE operation."""

    def __str__(self) -> str:
        """Avoid the quoting that ``KeyError`` applies to its message."""
        return str(self.args[0])


class ParameterError(PineError, ValueError):
    """A parameter of a request is missing, or its value cannot be used."""


class PineConnectionError(PineError, ConnectionError):
    """The emulator could not be reached at any candidate address."""

    def __init__(self, target: str, address: object):
        """Initialize the error.

        Args:
            target (str): The target that was dialed.
            address (object): The primary address of the target.
        """
        self.target = target
        self.address = address
        super().__init__(f"could not connect to PINE target '{target}' at {address!r}")


class NotConnectedError(PineError):
    """No emulator is connected at the moment."""


class NoTargetReachableError(PineError):
    """None of the known targets answered the connection probe."""


class SessionClosedError(PineError):
    """The session was closed while it was probing for targets."""


class MalformedFrameError(PineError):
    """An answer frame is too short, or its length is not valid for the operation."""

    def __init__(self, operation: str, raw: bytes, expected: Collection[int] | str, reason: str = ""):
        """Initialize the error.

        Args:
            operation (str): The name of the operation that the frame belongs to.
            raw (bytes): The raw bytes of the frame.
            expected (Collection[int] | str): The accepted frame lengths, for diagnosis.
            reason (str, optional): Additional explanation. Defaults to "".
        """
        self.operation = operation
        self.raw = bytes(raw)
        self.expected = expected

        if isinstance(expected, str):
            expected_text = expected

        else:
            expected_text = " or ".join(str(length) for length in sorted(expected))

        message = f"malformed {operation} answer frame, expected length {expected_text}: [{self.raw.hex(' ')}]"

        if reason:
            message = f"{message} ({reason})"

        super().__init__(message)
