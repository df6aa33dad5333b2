"""Caller-side configuration for validating a state file.

The stage validators take plain arguments. A caller that drives them from a
YAML file loads a :class:`ValidatorConfig` and passes its fields on::

    config = load_config("validate.yml")
    setup_logging(config.log_level)
    details = inputs.validate(handle, config.embedded, config.version)
    if config.rules.combined_embeddings:
        ...
"""

import logging
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Union

import yaml

from .validation.versions import VersionRules, parse_version, rules_for

logger = logging.getLogger(__name__)


def setup_logging(level: Union[int, str] = logging.INFO):
    """
    Configures the root logger for the application.

    Args:
        level: The logging level to set (e.g., logging.INFO, "DEBUG").
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )


@dataclass
class ValidatorConfig:
    """Settings for validating one state file."""

    version: Union[int, str]
    embedded: bool = True
    log_level: str = "INFO"

    def __post_init__(self):
        self.version = parse_version(self.version)
        if not isinstance(self.embedded, bool):
            raise ValueError(f"'embedded' should be a boolean, got {self.embedded!r}")
        self.log_level = str(self.log_level).upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @property
    def rules(self) -> VersionRules:
        return rules_for(self.version)


def load_config(config_path: Union[str, Path]) -> ValidatorConfig:
    """
    Loads a validator configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        A validated ValidatorConfig object.

    Raises:
        ValueError: If the file has unknown keys or invalid values.
    """
    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration in {config_path} should be a mapping")

    known = {f.name for f in fields(ValidatorConfig)}
    unknown = sorted(set(raw_config) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {unknown}")
    if "version" not in raw_config:
        raise ValueError(f"Configuration in {config_path} is missing 'version'")

    config = ValidatorConfig(**raw_config)
    logger.debug(f"Loaded configuration from {config_path}: {config}")
    return config
