"""This module describes the layout of PINE frames.

A frame is a sequence of little endian integer fields without gaps. Every frame starts with its total length, followed
by an opcode (requests) or a result code (answers) and operation-specific fields.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

from .catalog import ADDRESS_SIZE
from .catalog import LENGTH_FIELD_SIZE
from .catalog import OPCODE_SIZE
from .catalog import RESULT_CODE_SIZE
from .catalog import SLOT_SIZE
from .catalog import STATUS_SIZE
from .catalog import STRING_LENGTH_SIZE
from .catalog import AnswerKind
from .catalog import Operation
from woody.helper.conversion import bytes_to_int
from woody.helper.conversion import int_to_bytes

FieldName = Literal[
    "total_length", "opcode", "result_code", "address", "data", "slot", "value", "status", "string_length"
]


@dataclass
class Field:
    """An unsigned integer at a fixed position of a frame."""

    name: FieldName

    # Position of the first byte, counted from the start of the frame.
    offset: int

    # Width in bytes.
    size: int

    def __post_init__(self):
        """Reject negative positions and widths."""
        if self.size < 0 or self.offset < 0:
            raise ValueError(f"Field '{self.name}' needs a non-negative offset and size.")

        self._value = 0

    @property
    def end(self) -> int:
        """The offset of the first byte after this field."""
        return self.offset + self.size

    @property
    def value(self) -> int:
        """The stored value."""
        return self._value

    @value.setter
    def value(self, new_value: int | bytes | bytearray):
        """Store a new value; raw bytes are converted to int first.

        Args:
            new_value (int | bytes | bytearray): The new value.

        Raises:
            TypeError: If the value is neither an integer nor bytes.
            ValueError: If the value does not fit into the field.
        """
        if isinstance(new_value, (bytes, bytearray)):
            if len(new_value) != self.size:
                raise ValueError(f"'{self.name}' takes {self.size} bytes, got {len(new_value)}.")

            new_value = bytes_to_int(bytes(new_value))

        elif not isinstance(new_value, int):
            raise TypeError(f"Cannot store {type(new_value)} in field '{self.name}'.")

        if new_value < 0 or new_value.bit_length() > self.size * 8:
            raise ValueError(f"{new_value} does not fit into the {self.size * 8} unsigned bits of '{self.name}'.")

        self._value = new_value


class Frame:
    """The ordered fields of one frame. Fields are appended, so that the layout never has gaps or overlaps."""

    def __init__(self, *layout: tuple[FieldName, int]):
        """Lay out the initial fields, e.g. ``Frame(("total_length", 4), ("opcode", 1))``.

        Args:
            *layout (tuple[FieldName, int]): Names and sizes of the fields, in wire order.
        """
        self._fields: dict[FieldName, Field] = {}

        for name, size in layout:
            self.add(name, size)

    @property
    def size(self) -> int:
        """The total size of the frame in bytes."""
        return sum(field.size for field in self)

    def add(self, name: FieldName, size: int):
        """Append a field to the end of the frame.

        Args:
            name (FieldName): The name of the field.
            size (int): The field size in bytes.

        Raises:
            KeyError: If the frame already has a field with that name.
        """
        if name in self:
            raise KeyError(f"Frame already has a field '{name}'.")

        self._fields[name] = Field(name, self.size, size)

    def as_bytes(self) -> bytes:
        """Serialize all field values."""
        buffer = bytearray(self.size)

        for field in self:
            int_to_bytes(field.value, buffer, field.offset, field.size)

        return bytes(buffer)

    def parse(self, data: bytes):
        """Populate the field values from raw bytes.

        Args:
            data (bytes): Exactly as many bytes as the frame is long.

        Raises:
            ValueError: If the length of the data does not match the frame.
        """
        if len(data) != self.size:
            raise ValueError(f"Expected {self.size} bytes for the frame, got {len(data)}.")

        for field in self:
            field.value = bytes_to_int(data, field.offset, field.size)

    def __iter__(self) -> Iterator[Field]:
        """Fields in wire order."""
        return iter(self._fields.values())

    def __getitem__(self, name: FieldName) -> Field:
        """Get a field by its name."""
        return self._fields[name]

    def __setitem__(self, name: FieldName, value: int | bytes | bytearray):
        """Set the value of an existing field."""
        self._fields[name].value = value

    def __contains__(self, name: object) -> bool:
        """Whether the frame has a field with the given name."""
        return name in self._fields


def new_request_frame(operation: Operation) -> Frame:
    """Generate the request frame for an operation, with its total length and opcode already filled in.

    Args:
        operation (Operation): The operation that determines the frame composition.

    Returns:
        Frame: The new request frame.
    """
    frame = Frame(("total_length", LENGTH_FIELD_SIZE), ("opcode", OPCODE_SIZE))

    if operation.has_address:
        frame.add("address", ADDRESS_SIZE)

    if operation.writes_data:
        frame.add("data", operation.data_size)

    if operation.has_slot:
        frame.add("slot", SLOT_SIZE)

    frame["total_length"] = frame.size
    frame["opcode"] = operation.opcode.value

    return frame


def new_answer_frame(operation: Operation, length: int) -> Frame:
    """Generate the frame of an answer, based on its (already validated) total length.

    For string answers, this only covers the part in front of the string itself.

    Args:
        operation (Operation): The operation that the answer belongs to.
        length (int): The total length of the answer frame.

    Returns:
        Frame: The new answer frame.
    """
    frame = Frame(("total_length", LENGTH_FIELD_SIZE), ("result_code", RESULT_CODE_SIZE))

    if operation.answer_kind == AnswerKind.EMPTY or length <= frame.size:
        return frame

    if operation.answer_kind == AnswerKind.VALUE:
        frame.add("value", operation.value_size)

    elif operation.answer_kind == AnswerKind.STATUS:
        frame.add("status", STATUS_SIZE)

    else:
        frame.add("string_length", STRING_LENGTH_SIZE)

    return frame
