"""The bridge between request-facing APIs and the PINE core.

Requests arrive as an operation name and a mapping of parameters with lowercase names, e.g. ``address``, ``data`` and
``slot``. They are turned into PINE requests, exchanged over the active connection, and returned as decoded answers.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from woody.helper.conversion import parse_int
from woody.pine.catalog import ADDRESS_SIZE
from woody.pine.catalog import SLOT_SIZE
from woody.pine.catalog import Operation
from woody.pine.catalog import lookup
from woody.pine.codec import decode_answer
from woody.pine.codec import encode_request
from woody.pine.common import ParameterError
from woody.pine.messages import Answer
from woody.pine.messages import Request
from woody.session import SessionManager

# A logger for this module
logger = logging.getLogger(__name__)


def _integer_parameter(operation: Operation, parameters: Mapping[str, str], name: str, size: int) -> int:
    """Get an integer parameter.

    Args:
        operation (Operation): The operation that requires the parameter.
        parameters (Mapping[str, str]): All parameters.
        name (str): The name of the parameter.
        size (int): The size of the parameter value in bytes.

    Raises:
        ParameterError: If the parameter is missing or cannot be parsed.

    Returns:
        int: The parameter value.
    """
    try:
        text = parameters[name]

    except KeyError as e:
        raise ParameterError(f"no {name} provided for {operation.name} PINE request") from e

    try:
        return parse_int(text, size * 8)

    except ValueError as e:
        raise ParameterError(f"unable to parse {name} {text} for {operation.name} PINE request: {e}") from e


def request_from_parameters(operation: str | Operation, parameters: Mapping[str, str]) -> Request:
    """Build a request from textual parameters.

    Parameters that the operation does not need are ignored.

    Args:
        operation (str | Operation): The operation name, or the operation.
        parameters (Mapping[str, str]): The parameters, by lowercase name.

    Raises:
        UnknownOperationError: If the operation is unknown.
        ParameterError: If a required parameter is missing or invalid.

    Returns:
        Request: The request.
    """
    operation = lookup(operation)

    address = data = slot = None

    if operation.has_address:
        address = _integer_parameter(operation, parameters, "address", ADDRESS_SIZE)

    if operation.writes_data:
        data = _integer_parameter(operation, parameters, "data", operation.data_size)

    if operation.has_slot:
        slot = _integer_parameter(operation, parameters, "slot", SLOT_SIZE)

    return Request(operation, address=address, data=data, slot=slot)


class Bridge:
    """Executes PINE operations over the connection of a session."""

    def __init__(self, session: SessionManager):
        """Initialize the bridge.

        Args:
            session (SessionManager): The session that provides the active connection.
        """
        self.session = session

    def exchange(self, request: Request) -> Answer:
        """Send a request over the active connection and decode the answer.

        A failing transport makes the session drop the connection.

        Args:
            request (Request): The request to send.

        Raises:
            NotConnectedError: If no emulator is connected.
            PineConnectionError: If the emulator cannot be reached.
            OSError: If the exchange fails.
            MalformedFrameError: If the answer cannot be decoded.

        Returns:
            Answer: The decoded answer.
        """
        connection = self.session.active_connection()

        try:
            answer_bytes = connection.send(encode_request(request))

        except OSError as e:
            logger.error("Error while sending the %s PINE request: %s", request.operation.name, e)
            self.session.report_failure(connection, e)
            raise

        return decode_answer(request.operation, answer_bytes)

    def execute(self, operation: str, parameters: Mapping[str, str]) -> Answer:
        """Execute an operation by name.

        Args:
            operation (str): The operation name.
            parameters (Mapping[str, str]): The parameters, by lowercase name.

        Returns:
            Answer: The decoded answer.
        """
        request = request_from_parameters(operation, parameters)
        logger.info("Processing the %s PINE request.", request.operation.name)

        return self.exchange(request)
