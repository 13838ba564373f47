"""The backend application of woody.

This module includes the main application that provides an interface between the HTTP API, which faces tools and
scripts, and the PINE connection to a running emulator.

Requests from the API are translated to PINE requests, and PINE answers are returned as JSON documents.
"""
import argparse
import logging
import os
import sys
import threading
from typing import Optional

import uvicorn

import woody
from woody.api.server import create_app
from woody.bridge import Bridge
from woody.helper.settings import LOG_LEVEL_VARIABLE, WoodySettings, log_level_from_name
from woody.pine.common import PineError
from woody.session import SessionManager

# A logger for this module
logger = logging.getLogger(__name__)


class BackendService:
    """The backend service that owns the emulator session and the HTTP API server."""

    def __init__(self, settings: WoodySettings, session: SessionManager = None):
        """Initialize the service and start the session supervisor and the API server threads.

        Args:
            settings (WoodySettings): The settings object.
            session (SessionManager, optional): The session to use. Defaults to None, where a new session is created
                from the settings.
        """
        self.settings = settings

        if session is None:
            session = SessionManager(
                targets=settings.targets,
                timeout=settings.timeout,
                probe_interval=settings.probe_interval,
            )

        self.session = session
        self.bridge = Bridge(self.session)

        # Set, if the session supervisor stopped on an error.
        self.session_error: Optional[PineError] = None

        host, port = settings.api_address

        # Logging is configured by the application, uvicorn only propagates its records.
        self.api_server = uvicorn.Server(uvicorn.Config(create_app(self.bridge), host=host, port=port, log_config=None))

        # The supervisor probes for emulators, while the API already accepts requests.
        self.session.start(on_error=self.on_session_error)

        self.api_server_worker_thread = threading.Thread(
            target=self.api_server_worker, daemon=True, name="API server worker"
        )
        self.api_server_worker_thread.start()

        logger.info("API server starting on [%s]:%d.", host, port)

    def on_session_error(self, error: PineError):
        """Shut down the API server, after the session supervisor stopped.

        Args:
            error (PineError): The error that stopped the supervisor.
        """
        self.session_error = error
        self.api_server.should_exit = True

    def api_server_worker(self):
        """API server worker.

        Runs the HTTP server, until it is asked to exit.
        """
        self.api_server.run()

        logger.info("API server worker terminated.")

    def wait_for_termination(self):
        """Block until the API server terminates."""
        self.api_server_worker_thread.join()

    def close(self):
        """Close the backend service and terminate its threads."""
        self.api_server.should_exit = True
        self.api_server_worker_thread.join()

        self.session.close()


def main():
    """Launch the backend with default settings."""
    argument_parser = argparse.ArgumentParser(description="Bridge HTTP requests to PINE-capable emulators.")
    argument_parser.add_argument(
        "-s",
        "--settings",
        required=False,
        help="specifies the settings file path for configuring the woody backend application",
    )
    argument_parser.add_argument(
        "-l",
        "--log-level",
        required=False,
        help="the log level (debug, info, warn, error); overrides WOODY_LOG_LEVEL and the settings file",
    )
    arguments = argument_parser.parse_args()

    logging.basicConfig(
        level=log_level_from_name(arguments.log_level or os.environ.get(LOG_LEVEL_VARIABLE, "info")),
        format="%(asctime)s %(levelname)s %(name)s (%(filename)s:%(lineno)d): %(message)s",
    )

    settings = WoodySettings(arguments.settings)

    if arguments.log_level is None:
        # The settings file may define the level, if neither the command line nor the environment do.
        logging.getLogger().setLevel(settings.log_level)

    logger.info("Starting the woody backend, version %s.", woody.__version__)

    backend = BackendService(settings)

    try:
        backend.wait_for_termination()

    except KeyboardInterrupt:
        logger.info("Shutting down.")

    backend.close()

    if backend.session_error is not None:
        sys.exit(1)


if __name__ == "__main__":
    main()
