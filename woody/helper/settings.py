"""This module contains a class that handles settings for this application."""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from woody.pine.common import ConfigurationError
from woody.transport.resolver import known_target_names

# A logger for this module
logger = logging.getLogger(__name__)

LOG_LEVEL_VARIABLE = "WOODY_LOG_LEVEL"

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

DEFAULT_CONFIG: dict[str, Any] = {
    "api": {
        # Only accept local requests.
        "host": "localhost",
        "port": 6669,
    },
    "pine": {
        "timeout": 15.0,
        "probe_interval": 5.0,
        "targets": known_target_names(),
    },
    "logging": {
        "level": "info",
    },
}


def _merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge a dictionary into another one.

    Args:
        base (dict[str, Any]): The dictionary to merge into. It is modified in place.
        update (dict[str, Any]): The dictionary to merge.

    Returns:
        dict[str, Any]: The merged dictionary.
    """
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)

        else:
            base[key] = value

    return base


def log_level_from_name(name: str) -> int:
    """Convert a log level name to a ``logging`` level. Unknown names result in ``INFO``.

    Args:
        name (str): The level name, e.g. "debug" or "WARN".

    Returns:
        int: The ``logging`` level.
    """
    return LOG_LEVELS.get(name.strip().lower(), logging.INFO)


class WoodySettings:
    """This class holds and manages settings for the woody application."""

    default_config_path = "/var/lib/woody/config.yaml"

    def __init__(self, config_path: str | Path | None = None):
        """Load a config file in *.yaml format from a specified path.

        If no file is provided, the default path is used for loading settings. If there is no file at the default
        path, the built-in defaults are used.

        Args:
            config_path (str | Path | None, optional): The input path of the settings file.
                Defaults to None.

        Raises:
            FileNotFoundError: If an explicitly provided settings file does not exist.
            ConfigurationError: If the settings file is not valid.
        """
        self.config: dict[str, Any] = copy.deepcopy(DEFAULT_CONFIG)

        if config_path is None:
            config_path = WoodySettings.default_config_path

            if not Path(config_path).is_file():
                logger.info("No settings file at %s, using defaults.", config_path)
                self.validate()
                return

        try:
            # Open settings file, in order to configure the application
            with open(config_path, "r", encoding="utf8") as settings_file:
                loaded = yaml.safe_load(settings_file)
                logger.info("Settings file %s was loaded.", config_path)

        except FileNotFoundError:
            logger.error("Settings file not found at %s. Aborting.", config_path)
            raise

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Settings file {config_path} is not valid YAML: {e}") from e

        if loaded is not None:
            if not isinstance(loaded, dict):
                raise ConfigurationError(f"Settings file {config_path} does not contain a mapping.")

            _merge(self.config, loaded)

        self.validate()

    def validate(self):
        """Check the settings for consistency.

        Raises:
            ConfigurationError: If a setting has an invalid value.
        """
        for section in DEFAULT_CONFIG:
            if not isinstance(self.config.get(section), dict):
                raise ConfigurationError(f"Section '{section}' of the settings must be a mapping.")

        targets = self.targets

        if not targets:
            raise ConfigurationError("At least one target must be configured.")

        unknown_targets = [target for target in targets if target not in known_target_names()]

        if unknown_targets:
            raise ConfigurationError(
                f"Unknown targets {unknown_targets} in the settings, supported values are {known_target_names()}."
            )

        try:
            port = int(self.config["api"]["port"])
            timeout = float(self.config["pine"]["timeout"])
            probe_interval = float(self.config["pine"]["probe_interval"])

        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid API or PINE settings: {e}") from e

        if not 0 < port <= 65535:
            raise ConfigurationError(f"API port {port} is out of range.")

        if timeout <= 0 or probe_interval <= 0:
            raise ConfigurationError("PINE timeout and probe interval must be positive.")

    @property
    def api_address(self) -> tuple[str, int]:
        """The host and port, on which the API listens."""
        return str(self.config["api"]["host"]), int(self.config["api"]["port"])

    @property
    def timeout(self) -> float:
        """The deadline of single PINE exchanges in seconds."""
        return float(self.config["pine"]["timeout"])

    @property
    def probe_interval(self) -> float:
        """Seconds between two rounds of probing for emulators."""
        return float(self.config["pine"]["probe_interval"])

    @property
    def targets(self) -> list[str]:
        """The targets to probe, in order."""
        targets = self.config["pine"].get("targets") or []

        if isinstance(targets, str):
            targets = [targets]

        return [str(target).lower() for target in targets]

    @property
    def log_level(self) -> int:
        """The log level. The environment variable WOODY_LOG_LEVEL takes precedence over the settings file."""
        name = os.environ.get(LOG_LEVEL_VARIABLE) or str(self.config["logging"]["level"])

        return log_level_from_name(name)
