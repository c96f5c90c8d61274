"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  - static defaults checked into the repo
  2. .env file           - local developer overrides (not committed)
  3. Environment vars    - set at deploy time

The YAML also carries things that do not fit flat env vars: extra
embedding models and the collections to create at startup.
"""

from pathlib import Path

import yaml

from docvec.config.settings import Settings
from docvec.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file yields
              an empty base configuration.
        settings: Settings instance to merge; a fresh one is built when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML cannot be parsed or is not a mapping.
    """
    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Invalid YAML in {path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"Top level of {path} must be a mapping")
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "env": settings.app_env,
        },
        "embedding": {
            "default_model": settings.embedding_model,
            "timeout_seconds": settings.embedding_timeout_seconds,
            "available_providers": settings.get_available_embedding_providers(),
        },
        "vector_store": {
            "backend": settings.vector_backend,
        },
        "ingestion": {
            "max_concurrent": settings.ingestion_max_concurrent,
            "chunk_size": settings.default_chunk_size,
            "chunk_overlap": settings.default_chunk_overlap,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
