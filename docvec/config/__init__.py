"""Configuration module - exports Settings and load_config."""

from docvec.config.loader import load_config
from docvec.config.settings import Settings

__all__ = ["Settings", "load_config"]
