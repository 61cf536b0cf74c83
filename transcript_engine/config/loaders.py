"""
Configuration file loaders and path resolution.

This module handles:
- Path resolution (relative paths are anchored at the project root)
- YAML file loading with ${VAR} / $VAR environment expansion
"""

import os
from pathlib import Path

import yaml

# Project root directory (parent of transcript_engine/)
_PROJ_DIR = Path(__file__).parent.parent.parent.resolve()

DEFAULT_CONFIG_PATH = "config/transcript-engine.yaml"


def resolve_config_path(path: str) -> str:
    """
    Resolve configuration file path to absolute path.

    Args:
        path: Configuration file path (absolute or relative to the project root)

    Returns:
        Absolute path to configuration file
    """
    if not os.path.isabs(path):
        return os.path.join(_PROJ_DIR, path)
    return path


def load_yaml_with_env_expansion(path: str) -> dict:
    """
    Load YAML file with environment variable expansion.

    Args:
        path: Absolute path to YAML configuration file

    Returns:
        Parsed configuration dictionary (empty for an empty file)

    Raises:
        FileNotFoundError: If configuration file doesn't exist
        yaml.YAMLError: If YAML parsing fails or the document is not a mapping
    """
    try:
        with open(path, "r") as f:
            config_str = f.read()
    except FileNotFoundError:
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    try:
        config_data = yaml.safe_load(os.path.expandvars(config_str))
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Error parsing YAML configuration: {e}")

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        raise yaml.YAMLError(f"Configuration root must be a mapping, got {type(config_data).__name__}")
    return config_data
