"""
Utility functions shared across the conversation context package.

Validation helpers used by the configuration layer, config-file loading,
environment value parsing and human-readable time formatting.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Type, Union

import yaml

from .exceptions import ValidationError

logger = logging.getLogger(__name__)


def validate_enum(value: Any, enum_class: Type, field_name: str) -> Any:
    """Validate that a value is a valid enum member, coercing raw values."""
    if not isinstance(value, enum_class):
        try:
            return enum_class(value)
        except ValueError:
            valid_values = [e.value for e in enum_class]
            raise ValidationError(
                field_name, value, f"must be one of {valid_values}"
            )
    return value


def validate_range(
    value: Union[int, float],
    min_value: Optional[Union[int, float]] = None,
    max_value: Optional[Union[int, float]] = None,
    field_name: str = "value"
) -> Union[int, float]:
    """Validate that a numeric value is within a specified range."""
    if min_value is not None and value < min_value:
        raise ValidationError(field_name, value, f"must be >= {min_value}")
    if max_value is not None and value > max_value:
        raise ValidationError(field_name, value, f"must be <= {max_value}")
    return value


def load_config_file(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from a YAML or JSON file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the file format is not supported
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r') as f:
        if config_path.suffix in ['.yaml', '.yml']:
            config = yaml.safe_load(f) or {}
        elif config_path.suffix == '.json':
            config = json.load(f)
        else:
            raise ValueError(
                f"Unsupported config file format: {config_path.suffix}. "
                "Use .yaml, .yml, or .json"
            )

    logger.debug(f"Loaded configuration file: {config_path}")
    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge multiple configuration dictionaries.

    Later configs override earlier ones. Nested dictionaries are merged recursively.
    """
    result = {}

    for config in configs:
        for key, value in config.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value

    return result


def parse_env_value(value: str) -> Any:
    """Parse environment variable value to appropriate type."""
    # Try to parse as JSON first
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        pass

    if value.lower() in ['true', 'yes', 'on']:
        return True
    elif value.lower() in ['false', 'no', 'off']:
        return False

    return value


def format_elapsed(seconds: float) -> str:
    """Format an elapsed duration as a relative phrase ("5 minutes ago")."""
    minutes = int(seconds // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    return f"{days} days ago"
