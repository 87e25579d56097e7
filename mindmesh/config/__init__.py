"""Configuration module: exports Settings and the YAML-aware loaders."""

from mindmesh.config.loader import load_config, load_settings
from mindmesh.config.settings import Settings

__all__ = ["Settings", "load_config", "load_settings"]
