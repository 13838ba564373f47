"""Encoding of PINE requests and decoding of PINE answers.

All operations share the same codec. The frame composition is driven by the operation layouts of the catalog.
"""

from __future__ import annotations

import logging

from .catalog import LENGTH_FIELD_SIZE
from .catalog import AnswerKind
from .catalog import Operation
from .catalog import lookup
from .common import MalformedFrameError
from .frame import new_answer_frame
from .frame import new_request_frame
from .messages import Answer
from .messages import Request
from woody.helper.conversion import bytes_to_int32
from woody.helper.conversion import hex_dump

# A logger for this module
logger = logging.getLogger(__name__)

STRING_TERMINATOR = "\x00"


def encode_request(request: Request) -> bytes:
    """Build the wire frame of a request.

    Args:
        request (Request): The request to encode.

    Returns:
        bytes: The frame, starting with its total length and the opcode.
    """
    frame = new_request_frame(request.operation)

    if request.address is not None:
        frame["address"] = request.address

    if request.data is not None:
        frame["data"] = request.data

    if request.slot is not None:
        frame["slot"] = request.slot

    encoded = frame.as_bytes()
    logger.debug("[%s] request bytes: %s", request.operation.name, hex_dump(encoded))

    return encoded


def _check_length(operation: Operation, data: bytes) -> int:
    """Read the length prefix of an answer frame and validate it against the operation.

    Args:
        operation (Operation): The operation that the answer belongs to.
        data (bytes): The raw answer.

    Raises:
        MalformedFrameError: If the frame is too short, truncated, or has an invalid length.

    Returns:
        int: The validated total frame length.
    """
    expected = operation.expected_answer_lengths

    if len(data) < LENGTH_FIELD_SIZE:
        raise MalformedFrameError(operation.name, data, expected, "no length prefix")

    length = bytes_to_int32(data)

    if operation.answer_kind == AnswerKind.STRING:
        valid = length >= operation.min_answer_length

    else:
        valid = length in operation.answer_lengths

    if not valid:
        logger.error("[%s] unexpected answer length %d: %s", operation.name, length, hex_dump(data))
        raise MalformedFrameError(operation.name, data, expected, f"declared length {length}")

    if len(data) < length:
        raise MalformedFrameError(operation.name, data, expected, f"declared length {length}, received {len(data)}")

    if len(data) > length:
        logger.debug("[%s] ignoring %d bytes after the answer frame.", operation.name, len(data) - length)

    return length


def decode_answer(operation: str | int | Operation, data: bytes) -> Answer:
    """Decode an answer frame.

    Args:
        operation (str | int | Operation): The operation of the request that this answer belongs to.
        data (bytes): The raw answer frame.

    Raises:
        MalformedFrameError: If the frame does not fit the operation.

    Returns:
        Answer: The decoded answer.
    """
    operation = lookup(operation)
    logger.debug("[%s] answer bytes: %s", operation.name, hex_dump(data))

    length = _check_length(operation, data)
    frame = new_answer_frame(operation, length)
    frame.parse(data[: frame.size])

    result_code = frame["result_code"].value

    if operation.answer_kind == AnswerKind.VALUE and "value" in frame:
        return Answer(operation, result_code, value=frame["value"].value)

    if operation.answer_kind == AnswerKind.STATUS and "status" in frame:
        return Answer(operation, result_code, value=frame["status"].value)

    if operation.answer_kind == AnswerKind.STRING:
        string_length = frame["string_length"].value

        if frame.size + string_length > length:
            raise MalformedFrameError(
                operation.name,
                data,
                operation.expected_answer_lengths,
                f"string of {string_length} bytes exceeds the frame",
            )

        text = data[frame.size : frame.size + string_length].decode("utf-8", errors="replace")

        if text.endswith(STRING_TERMINATOR):
            text = text[: -len(STRING_TERMINATOR)]

        return Answer(operation, result_code, text=text)

    return Answer(operation, result_code)
