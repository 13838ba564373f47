"""This module contains the requests that are sent to an emulator, and the answers that it returns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .catalog import ADDRESS_SIZE
from .catalog import SLOT_SIZE
from .catalog import AnswerKind
from .catalog import Operation
from .catalog import ResultCode
from .catalog import lookup
from .common import ParameterError


def _check_width(operation: Operation, name: str, value: int | None, size: int):
    if value is None:
        raise ParameterError(f"{operation.name} requests require a {name}.")

    if isinstance(value, bool) or not isinstance(value, int):
        raise ParameterError(f"The {name} of {operation.name} requests must be an integer, got {value!r}.")

    if value < 0 or value.bit_length() > size * 8:
        raise ParameterError(f"The {name} {value:#x} of {operation.name} requests does not fit into {size * 8} bits.")


def _check_absent(operation: Operation, name: str, value: int | None):
    if value is not None:
        raise ParameterError(f"{operation.name} requests do not take a {name}.")


@dataclass(frozen=True)
class Request:
    """A request to the emulator.

    Only the fields that the operation's layout defines may be set, e.g. ``Request("read32", address=0x35459C)`` or
    ``Request("savestate", slot=1)``.
    """

    operation: Operation
    address: int | None = None
    data: int | None = None
    slot: int | None = None

    def __init__(
        self,
        operation: str | int | Operation,
        address: int | None = None,
        data: int | None = None,
        slot: int | None = None,
    ):
        """Create a new request and check its fields against the operation layout.

        Args:
            operation (str | int | Operation): The operation name, its opcode or the operation itself.
            address (int | None, optional): The memory address, for reads and writes. Defaults to None.
            data (int | None, optional): The data to write, for writes. Defaults to None.
            slot (int | None, optional): The save state slot, for loading and saving states. Defaults to None.

        Raises:
            ParameterError: If fields are missing, superfluous, or do not fit.
        """
        resolved = lookup(operation)

        if resolved.has_address:
            _check_width(resolved, "address", address, ADDRESS_SIZE)

        else:
            _check_absent(resolved, "address", address)

        if resolved.writes_data:
            _check_width(resolved, "data", data, resolved.data_size)

        else:
            _check_absent(resolved, "data", data)

        if resolved.has_slot:
            _check_width(resolved, "slot", slot, SLOT_SIZE)

        else:
            _check_absent(resolved, "slot", slot)

        object.__setattr__(self, "operation", resolved)
        object.__setattr__(self, "address", address)
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "slot", slot)


@dataclass(frozen=True)
class Answer:
    """An answer from the emulator, decoded from an answer frame."""

    operation: Operation

    # 0 for success, 255 for failure. Other values are reserved by the protocol.
    result_code: int

    # The memory value of reads, the status of status requests, if present.
    value: int | None = None

    # The string of version, title, id, uuid and game version requests.
    text: str | None = None

    @property
    def succeeded(self) -> bool:
        """Whether the emulator reported success."""
        return self.result_code == ResultCode.OK

    @property
    def failed(self) -> bool:
        """Whether the emulator reported failure."""
        return self.result_code == ResultCode.FAIL

    @property
    def payload(self) -> int | str | None:
        """The variant-specific payload of this answer."""
        if self.operation.answer_kind == AnswerKind.STRING:
            return self.text

        return self.value

    def as_dict(self) -> dict[str, Any]:
        """The answer as a dictionary, with the field names of the API responses.

        Returns:
            dict[str, Any]: The result code, and the payload under its API name, if the operation has one.
        """
        answer: dict[str, Any] = {"resultCode": self.result_code}

        if self.operation.answer_field is not None:
            answer[self.operation.answer_field] = self.payload

        return answer
