"""Configuration loading with clear priority hierarchy.

Configuration is loaded in the following priority order (lowest to highest):
1. Pydantic model defaults (defined in config_models.py)
2. config.yaml file
3. Environment variables (a ``.env`` file is loaded first)
4. CLI arguments (applied after load_config returns)
"""

from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv

from .config_models import AppConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


@dataclass
class EnvVarMapping:
    """Defines how an environment variable maps to a config key.

    Attributes:
        env_var: Environment variable name
        config_key: Key in the config dict
        value_type: Type to convert the value to (str or int)
    """

    env_var: str
    config_key: str
    value_type: type = str


ENV_VAR_MAPPINGS: list[EnvVarMapping] = [
    EnvVarMapping("ATTACHMENTS_USER_DATA_DIR", "user_data_dir"),
    EnvVarMapping("ATTACHMENTS_LOG_LEVEL", "log_level"),
    EnvVarMapping("ATTACHMENTS_THUMBNAIL_SIZE", "thumbnail_size", int),
]


def load_yaml_file(
    file_path: str | pathlib.Path,
) -> dict[str, Any]:  # noqa: ANN401
    """Load a YAML file, returning an empty dict if not found.

    Args:
        file_path: Path to the YAML file

    Returns:
        The loaded YAML content as a dictionary, or empty dict if file not found
    """
    try:
        with open(file_path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
            if isinstance(content, dict):
                return content
            if content is not None:
                logger.warning(f"{file_path} is not a valid dictionary. Ignoring.")
            return {}
    except FileNotFoundError:
        logger.info(f"{file_path} not found.")
        return {}
    except yaml.YAMLError as e:
        logger.error(f"Error parsing {file_path}: {e}.")
        return {}


def apply_env_var_overrides(
    config_data: dict[str, Any],  # noqa: ANN401
    mappings: list[EnvVarMapping] | None = None,
) -> None:
    """Apply environment variable overrides to configuration.

    Args:
        config_data: The configuration dictionary to modify in place
        mappings: List of env var mappings to apply (defaults to ENV_VAR_MAPPINGS)
    """
    if mappings is None:
        mappings = ENV_VAR_MAPPINGS

    for mapping in mappings:
        env_value = os.getenv(mapping.env_var)
        if env_value is None:
            continue
        try:
            config_data[mapping.config_key] = mapping.value_type(env_value)
            logger.debug(f"Applied env var {mapping.env_var} to {mapping.config_key}")
        except ValueError as e:
            logger.error(
                f"Invalid value for {mapping.env_var}: {e}. Using previous value."
            )


def load_config(
    config_file_path: str | pathlib.Path | None = DEFAULT_CONFIG_FILE,
    *,
    load_env_file: bool = True,
) -> AppConfig:
    """Load configuration from YAML and the environment.

    Args:
        config_file_path: Path to the YAML config file; None skips it
        load_env_file: Whether to load a ``.env`` file into the environment

    Returns:
        The validated AppConfig

    Raises:
        pydantic.ValidationError: If the merged configuration is invalid
    """
    if load_env_file:
        load_dotenv()

    config_data: dict[str, Any] = {}
    if config_file_path is not None:
        config_data.update(load_yaml_file(config_file_path))

    apply_env_var_overrides(config_data)

    config = AppConfig.model_validate(config_data)
    logger.debug(f"Loaded configuration: {config.model_dump()}")
    return config
