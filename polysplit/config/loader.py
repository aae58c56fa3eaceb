import yaml
from pathlib import Path
from pydantic import ValidationError

from polysplit.domain.errors import ConfigError
from .models import AppConfig


def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")

    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {config_path}: {e}") from e
