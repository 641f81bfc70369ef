# setup/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file and command-line arguments, applying this order of
precedence (lowest first):
1. Pydantic Model Defaults
2. Environment Variables (ERP_ prefix, nested with "__")
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_models import AppSettings, RunParameters

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from `overrides`.

    Nested dictionaries are merged key by key; any other value replaces the
    one in `source`. None values in `overrides` never clobber existing keys.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml_config(
    yaml_config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not (yaml_config_path.exists() and yaml_config_path.is_file()):
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}
    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}
    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def _cli_overrides(cli_args: Optional[argparse.Namespace]) -> Dict[str, Any]:
    if cli_args is None:
        return {}
    overrides: Dict[str, Any] = {}
    if getattr(cli_args, "log_dir", None):
        overrides["log_dir"] = cli_args.log_dir
    if getattr(cli_args, "log_format", None):
        overrides["log_format"] = cli_args.log_format
    if getattr(cli_args, "run_timeout", None):
        overrides["run_timeout_seconds"] = cli_args.run_timeout
    if getattr(cli_args, "clean", False):
        overrides["clean_previous_install"] = True
    if getattr(cli_args, "no_upgrade", False):
        overrides["upgrade_packages"] = False
    return overrides


def load_app_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: str = DEFAULT_CONFIG_FILE,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads application settings with precedence CLI > YAML > ENV > defaults.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.

    Raises:
        pydantic.ValidationError: If the merged values are invalid.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # BaseSettings loads defaults and environment variables here.
    current_values_dict = AppSettings().model_dump(exclude_defaults=False)

    yaml_data = _read_yaml_config(Path(config_file_path), logger_to_use)
    current_values_dict = _deep_update(current_values_dict, yaml_data)
    current_values_dict = _deep_update(
        current_values_dict, _cli_overrides(cli_args)
    )

    try:
        return AppSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Invalid configuration: {e}")
        raise


def load_run_parameters(
    cli_args: Optional[argparse.Namespace] = None,
) -> RunParameters:
    """
    Build run parameters from the environment (ERPNEXT_ prefix) and any
    non-secret values given on the command line. Secrets are never taken
    from the command line.
    """
    params = RunParameters()
    if cli_args is None:
        return params
    if getattr(cli_args, "site_name", None):
        params.site_name = cli_args.site_name
    if getattr(cli_args, "system_user", None):
        params.system_user = cli_args.system_user
    if getattr(cli_args, "no_create_user", False):
        params.create_new_user = False
    return params
