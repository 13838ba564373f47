"""The catalog of PINE operations.

Each operation has a fixed opcode and a fixed layout of request fields. The layout also determines which answer
frame lengths are valid. Based on the PINE standard draft at
https://projects.govanify.com/govanify/pine/-/blob/3298a7dac42b2385a378720bf705fcd6a2eb553f/standard/draft.dtd
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from enum import IntEnum

from .common import UnknownOperationError

# Every frame starts with the total frame length.
LENGTH_FIELD_SIZE = 4

# Requests continue with an opcode, answers with a result code.
OPCODE_SIZE = 1
RESULT_CODE_SIZE = 1

# Addresses in the emulated memory are always 32 bit wide.
ADDRESS_SIZE = 4
SLOT_SIZE = 1
STATUS_SIZE = 4
STRING_LENGTH_SIZE = 4

# Length of the smallest frame, a request without arguments or an answer without payload.
BASE_FRAME_LENGTH = LENGTH_FIELD_SIZE + OPCODE_SIZE

# Shortest valid string answer: header, string length and at least a single byte of string.
MIN_STRING_ANSWER_LENGTH = BASE_FRAME_LENGTH + STRING_LENGTH_SIZE + 1


class Opcode(IntEnum):
    """Opcodes of all supported PINE operations."""

    READ8 = 0x0
    READ16 = 0x1
    READ32 = 0x2
    READ64 = 0x3
    WRITE8 = 0x4
    WRITE16 = 0x5
    WRITE32 = 0x6
    WRITE64 = 0x7
    VERSION = 0x8
    SAVE_STATE = 0x9
    LOAD_STATE = 0xA
    TITLE = 0xB
    ID = 0xC
    UUID = 0xD
    GAME_VERSION = 0xE
    STATUS = 0xF


class ResultCode(IntEnum):
    """Result codes that the emulator sends back as the first payload byte of an answer."""

    OK = 0x00
    FAIL = 0xFF


class AnswerKind(Enum):
    """The kind of payload that an answer carries."""

    # Only the result code.
    EMPTY = "empty"

    # A memory value of fixed width, present on success.
    VALUE = "value"

    # A length-prefixed string.
    STRING = "string"

    # The emulator status, present if the frame is long enough.
    STATUS = "status"


@dataclass(frozen=True)
class Operation:
    """Describes the request layout and the valid answers of a single PINE operation."""

    # The name of the operation, as used by the API.
    name: str

    opcode: Opcode

    # Whether the request carries a 32 bit address.
    has_address: bool = False

    # Size of the written data in bytes, zero for operations that do not write.
    data_size: int = 0

    # Whether the request carries a save state slot.
    has_slot: bool = False

    answer_kind: AnswerKind = AnswerKind.EMPTY

    # Size of a read memory value in bytes.
    value_size: int = 0

    # The name of the answer payload in API responses, if there is any payload.
    answer_field: str | None = None

    @property
    def request_length(self) -> int:
        """The total length of a request frame for this operation."""
        length = BASE_FRAME_LENGTH

        if self.has_address:
            length += ADDRESS_SIZE

        length += self.data_size

        if self.has_slot:
            length += SLOT_SIZE

        return length

    @property
    def answer_lengths(self) -> frozenset[int]:
        """The exact answer frame lengths that are valid for fixed-size answers.

        String answers have no fixed size; use ``min_answer_length`` for them.
        """
        if self.answer_kind == AnswerKind.VALUE:
            return frozenset((BASE_FRAME_LENGTH, BASE_FRAME_LENGTH + self.value_size))

        if self.answer_kind == AnswerKind.STATUS:
            return frozenset((BASE_FRAME_LENGTH, BASE_FRAME_LENGTH + STATUS_SIZE))

        if self.answer_kind == AnswerKind.EMPTY:
            return frozenset((BASE_FRAME_LENGTH,))

        return frozenset()

    @property
    def min_answer_length(self) -> int:
        """The shortest valid answer frame for this operation."""
        if self.answer_kind == AnswerKind.STRING:
            return MIN_STRING_ANSWER_LENGTH

        return min(self.answer_lengths)

    @property
    def expected_answer_lengths(self) -> frozenset[int] | str:
        """The valid answer lengths, in a form that is suitable for error messages."""
        if self.answer_kind == AnswerKind.STRING:
            return f">= {MIN_STRING_ANSWER_LENGTH}"

        return self.answer_lengths

    @property
    def writes_data(self) -> bool:
        """Whether this is a memory write."""
        return self.data_size > 0


def _read(name: str, opcode: Opcode, size: int) -> Operation:
    return Operation(
        name, opcode, has_address=True, answer_kind=AnswerKind.VALUE, value_size=size, answer_field="memoryValue"
    )


def _write(name: str, opcode: Opcode, size: int) -> Operation:
    return Operation(name, opcode, has_address=True, data_size=size)


def _string(name: str, opcode: Opcode, answer_field: str) -> Operation:
    return Operation(name, opcode, answer_kind=AnswerKind.STRING, answer_field=answer_field)


OPERATIONS: tuple[Operation, ...] = (
    _read("read8", Opcode.READ8, 1),
    _read("read16", Opcode.READ16, 2),
    _read("read32", Opcode.READ32, 4),
    _read("read64", Opcode.READ64, 8),
    _write("write8", Opcode.WRITE8, 1),
    _write("write16", Opcode.WRITE16, 2),
    _write("write32", Opcode.WRITE32, 4),
    _write("write64", Opcode.WRITE64, 8),
    _string("version", Opcode.VERSION, "version"),
    Operation("savestate", Opcode.SAVE_STATE, has_slot=True),
    Operation("loadstate", Opcode.LOAD_STATE, has_slot=True),
    _string("title", Opcode.TITLE, "title"),
    _string("id", Opcode.ID, "id"),
    _string("uuid", Opcode.UUID, "uuid"),
    _string("gameversion", Opcode.GAME_VERSION, "gameVersion"),
    Operation("status", Opcode.STATUS, answer_kind=AnswerKind.STATUS, answer_field="status"),
)

_OPERATIONS_BY_NAME: dict[str, Operation] = {operation.name: operation for operation in OPERATIONS}
_OPERATIONS_BY_OPCODE: dict[Opcode, Operation] = {operation.opcode: operation for operation in OPERATIONS}

def operation_names() -> list[str]:
    """The names of all known operations, in opcode order."""
    return [operation.name for operation in OPERATIONS]


def lookup(operation: str | int | Operation) -> Operation:
    """Find an operation by its name or opcode.

    Args:
        operation (str | int | Operation): The operation name (case-insensitive), its opcode, or an operation,
            which is returned as is.

    Raises:
        UnknownOperationError: If no such operation exists.

    Returns:
        Operation: The matching operation.
    """
    if isinstance(operation, Operation):
        return operation

    if isinstance(operation, str):
        try:
            return _OPERATIONS_BY_NAME[operation.lower()]

        except KeyError as e:
            raise UnknownOperationError(
                f"unknown PINE operation '{operation}', supported operations are {operation_names()}"
            ) from e

    try:
        return _OPERATIONS_BY_OPCODE[Opcode(operation)]

    except ValueError as e:
        raise UnknownOperationError(f"unknown PINE opcode {operation}") from e
