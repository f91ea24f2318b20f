"""Configuration module - exports Settings and load_config."""

from groundwell.config.loader import load_config
from groundwell.config.settings import Settings

__all__ = ["Settings", "load_config"]
