"""Integer conversions for PINE frames and for user input.

- Little endian bytes to unsigned integers, and back
- Parsing of user-supplied integers in decimal or hexadecimal notation
- Hex dumps of raw frames for the log
"""
from typing import Literal, Optional

# PINE uses little endian for every multi-byte integer, regardless of the host.
PINE_ENDIANNESS: Literal["big", "little"] = "little"

HEX_PREFIX = "0x"


def bytes_to_int(data: bytes, offset: int = 0, length: Optional[int] = None) -> int:
    """Read an unsigned little endian integer from a buffer.

    Args:
        data (bytes): The buffer.
        offset (int, optional): Index of the first byte to read. Defaults to 0.
        length (Optional[int], optional): How many bytes to read. Defaults to None, for everything after the offset.

    Returns:
        int: The integer value.
    """
    end = None if length is None else offset + length

    return int.from_bytes(data[offset:end], byteorder=PINE_ENDIANNESS)


def bytes_to_int32(data: bytes, offset: int = 0) -> int:
    """Read a 32 bit length or status field from a buffer."""
    return bytes_to_int(data, offset, 4)


def int_to_bytes(value: int, buffer: Optional[bytearray] = None, offset: int = 0, length: int = 1) -> bytearray:
    """Write an unsigned little endian integer into a buffer.

    Args:
        value (int): The integer to write.
        buffer (Optional[bytearray], optional): The target buffer. Defaults to None, which allocates a buffer that
            ends right after the written integer.
        offset (int, optional): Index of the first byte to write. Defaults to 0.
        length (int, optional): Width of the integer in bytes. Defaults to 1.

    Returns:
        bytearray: The buffer.
    """
    if buffer is None:
        buffer = bytearray(offset + length)

    buffer[offset : offset + length] = value.to_bytes(length, byteorder=PINE_ENDIANNESS)

    return buffer


def parse_int(text: str, bit_size: int) -> int:
    """Parse an unsigned integer, given in decimal or ``0x``-prefixed hexadecimal notation.

    Args:
        text (str): The text to parse.
        bit_size (int): The number of bits that the value must fit into.

    Raises:
        ValueError: If the text is not a number, is negative, or does not fit into ``bit_size`` bits.

    Returns:
        int: The parsed value.
    """
    text = text.strip()

    if text.lower().startswith(HEX_PREFIX):
        digits, base = text[len(HEX_PREFIX) :], 16

    else:
        digits, base = text, 10

    # int() would otherwise accept signs, underscores, surrounding whitespace and non-ASCII digits.
    if not digits or not digits.isascii() or not digits.isalnum():
        raise ValueError(f"'{text}' is not a valid unsigned integer.")

    value = int(digits, base)

    if value.bit_length() > bit_size:
        raise ValueError(f"{text} does not fit into {bit_size} bits.")

    return value


def hex_dump(data: bytes) -> str:
    """Format bytes for log output, e.g. ``09 00 00 00 02``.

    Args:
        data (bytes): The bytes to format.

    Returns:
        str: Space-separated hexadecimal byte values.
    """
    return data.hex(" ")
