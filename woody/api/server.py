"""This module provides the HTTP API of woody.

Requests:
- both GET and POST requests are supported, on any path
- the PINE request type is a parameter (e.g. ``/?woodyRequestType=Version``) or a header
  (e.g. ``Woody-Request-Type: Version``)
- request parameters are parameters (e.g. ``/?woodyRequestType=Read8&woodyAddress=0x35459C``) or headers
  (e.g. ``Woody-Address: 0x35459C``)
- parameters must start with "woody", headers must start with "Woody-"

Answers are JSON documents that contain the result code and the answer payload, if any. Result code 0 maps to a 200
(OK) status, result code 255 maps to 500 (Internal Server Error), other result codes map to 501 (Not Implemented).
Errors are JSON documents with an ``errMessage``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from urllib.parse import parse_qsl

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.concurrency import run_in_threadpool

import woody
from woody.bridge import Bridge
from woody.pine.catalog import ResultCode
from woody.pine.common import MalformedFrameError
from woody.pine.common import NotConnectedError
from woody.pine.common import ParameterError
from woody.pine.common import PineError
from woody.pine.common import UnknownOperationError

# A logger for this module
logger = logging.getLogger(__name__)

PARAMETER_PREFIX = "woody"
REQUEST_TYPE_KEY = "woodyrequesttype"

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def normalize_key(key: str) -> str:
    """Normalize parameter and header names, which use different naming styles.

    Args:
        key (str): The parameter or header name, e.g. "Woody-Request-Type" or "woody_address".

    Returns:
        str: The name in lowercase, without dashes and underscores.
    """
    return key.lower().replace("-", "").replace("_", "")


def status_for_result_code(result_code: int) -> int:
    """Map a PINE result code to an HTTP status code.

    Args:
        result_code (int): The result code of the answer.

    Returns:
        int: The HTTP status code.
    """
    if result_code == ResultCode.OK:
        return 200

    if result_code == ResultCode.FAIL:
        return 500

    return 501


def classify_http_status(error: Exception) -> int:
    """Map an error of a PINE request to an HTTP status code.

    Args:
        error (Exception): The error.

    Returns:
        int: 400 for bad requests, 503 without an emulator, 502 for failed exchanges, 500 otherwise.
    """
    if isinstance(error, (UnknownOperationError, ParameterError)):
        return 400

    if isinstance(error, NotConnectedError):
        return 503

    if isinstance(error, (MalformedFrameError, OSError)):
        return 502

    return 500


def _first_values(items: Iterable[tuple[str, str]], combined: dict[str, str]):
    """Add items to the combined parameters; for repeated keys, the first value wins."""
    seen: set[str] = set()

    for key, value in items:
        normalized = normalize_key(key)

        if normalized not in seen:
            combined[normalized] = value
            seen.add(normalized)


async def collect_parameters(request: Request) -> dict[str, str]:
    """Combine URL parameters, form parameters and headers, with normalized names.

    Form parameters take precedence over URL parameters, headers take precedence over both.

    Args:
        request (Request): The HTTP request.

    Raises:
        ParameterError: If the form cannot be parsed.

    Returns:
        dict[str, str]: The first value of every parameter, by normalized name.
    """
    combined: dict[str, str] = {}

    _first_values(request.query_params.multi_items(), combined)

    if request.method == "POST" and request.headers.get("content-type", "").startswith(FORM_CONTENT_TYPE):
        body = await request.body()

        try:
            _first_values(parse_qsl(body.decode("utf-8"), keep_blank_values=True), combined)

        except UnicodeDecodeError as e:
            raise ParameterError("could not parse HTTP form and/or path parameters") from e

    _first_values(
        ((key, value) for key, value in request.headers.items() if normalize_key(key).startswith(PARAMETER_PREFIX)),
        combined,
    )

    return combined


def create_app(bridge: Bridge) -> FastAPI:
    """Create the API application.

    Args:
        bridge (Bridge): The bridge that executes PINE requests.

    Returns:
        FastAPI: The application.
    """
    app = FastAPI(title="woody", version=woody.__version__, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.bridge = bridge

    async def error_response(request: Request, exc: Exception) -> JSONResponse:
        status = classify_http_status(exc)
        request_type = getattr(request.state, "request_type", "")

        if isinstance(exc, MalformedFrameError):
            message = f"error while converting the answer for the {request_type} PINE request: {exc}"

        elif isinstance(exc, OSError):
            message = f"error while sending the {request_type} PINE request: {exc}"

        else:
            message = str(exc)

        logger.error("%s (HTTP status %d)", message, status)
        return JSONResponse(status_code=status, content={"errMessage": message})

    app.add_exception_handler(PineError, error_response)
    app.add_exception_handler(OSError, error_response)

    @app.api_route("/{path:path}", methods=["GET", "POST"])
    async def handle_pine_request(request: Request) -> JSONResponse:
        """Translate an HTTP request into a PINE request, and the PINE answer into an HTTP response."""
        parameters = await collect_parameters(request)
        request_type = parameters.pop(REQUEST_TYPE_KEY, "").lower()

        if not request_type:
            raise ParameterError("no PINE request type found in HTTP request")

        request.state.request_type = request_type

        pine_parameters = {
            key[len(PARAMETER_PREFIX) :]: value for key, value in parameters.items() if key.startswith(PARAMETER_PREFIX)
        }

        logger.info("Processing the PINE request '%s' with parameters %s.", request_type, pine_parameters)

        # Exchanges block, until the emulator answers.
        answer = await run_in_threadpool(request.app.state.bridge.execute, request_type, pine_parameters)

        return JSONResponse(status_code=status_for_result_code(answer.result_code), content=answer.as_dict())

    return app
