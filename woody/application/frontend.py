"""This module is a command line frontend that talks PINE to an emulator directly.

It performs a single exchange, without the backend, and prints the answer. Useful for checking that an emulator is
reachable and answers as expected.
"""
import argparse
import json
import logging
import sys
from typing import List, Optional

from woody.bridge import request_from_parameters
from woody.pine.catalog import operation_names
from woody.pine.codec import decode_answer, encode_request
from woody.pine.common import PineError
from woody.transport.connection import DEFAULT_TIMEOUT, Connection
from woody.transport.resolver import known_target_names, resolve

# A logger for this module
logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None) -> int:
    """The frontend command-line application, which sends one PINE request to an emulator.

    Args:
        argv (Optional[List[str]], optional): The command line arguments. Defaults to None, for ``sys.argv``.

    Returns:
        int: The exit code.
    """
    argument_parser = argparse.ArgumentParser(description="Send a single PINE request to an emulator.")

    argument_parser.add_argument(
        "request_type",
        type=str.lower,
        choices=operation_names(),
        help="The PINE request to send.",
    )

    argument_parser.add_argument(
        "-a",
        "--address",
        required=False,
        type=str,
        help="The memory address for reads and writes, decimal or 0x-prefixed hexadecimal.",
    )

    argument_parser.add_argument(
        "-d",
        "--data",
        required=False,
        type=str,
        help="The data for writes, decimal or 0x-prefixed hexadecimal.",
    )

    argument_parser.add_argument(
        "-s",
        "--slot",
        required=False,
        type=str,
        help="The save state slot for savestate and loadstate.",
    )

    argument_parser.add_argument(
        "-t",
        "--target",
        required=False,
        default=known_target_names()[0],
        help=f"The emulator to talk to, one of {known_target_names()}.",
    )

    argument_parser.add_argument(
        "-p",
        "--pine-slot",
        required=False,
        type=int,
        default=0,
        help="The PINE slot of the emulator. Defaults to the default slot of the target.",
    )

    argument_parser.add_argument(
        "-v",
        "--verbose",
        required=False,
        help="Log the exchanged bytes.",
        action="store_true",
    )

    arguments = argument_parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if arguments.verbose else logging.WARNING)

    parameters = {
        name: value
        for name, value in (("address", arguments.address), ("data", arguments.data), ("slot", arguments.slot))
        if value is not None
    }

    try:
        request = request_from_parameters(arguments.request_type, parameters)
        connection = Connection(resolve(arguments.target, arguments.pine_slot), timeout=DEFAULT_TIMEOUT)
        answer = decode_answer(request.operation, connection.send(encode_request(request)))

    except (PineError, OSError) as e:
        logger.error("%s", e)
        return 1

    print(json.dumps(answer.as_dict()))

    return 0 if answer.succeeded else 2


if __name__ == "__main__":
    sys.exit(main())
