"""YAML configuration loader with environment variable overrides.

# --- CONFIGURATION HIERARCHY -----------------------------------------
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. .env file           - local developer defaults (not committed)
#   2. config/config.yaml  - static defaults checked into the repo
#   3. Environment vars    - set at deploy time
#
# YAML is organised in sections; each section key is flattened into a
# Settings field name through _SECTION_PREFIXES:
#
#   chunking:
#     min_size: 200          ->  chunk_min_size=200
#   database_path: x.db      ->  database_path="x.db"   (top-level keys pass through)
# ---------------------------------------------------------------------
"""

import os
from pathlib import Path
from typing import Any

import yaml

from mindmesh.config.settings import Settings

# YAML section name -> prefix used by the matching Settings fields.
_SECTION_PREFIXES: dict[str, str] = {
    "app": "app",
    "chunking": "chunk",
    "embedding": "embedding",
    "circuit_breaker": "circuit_breaker",
    "enrichment": "enrichment",
    "retrieval": "retrieval",
    "llm": "llm",
    "log": "log",
    "storage": "storage",
}


def load_config(path: str = "config/config.yaml") -> dict[str, Any]:
    """Read the YAML configuration file, returning ``{}`` when it is absent."""
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_settings(path: str = "config/config.yaml", **overrides: Any) -> Settings:
    """Build :class:`Settings` from YAML defaults, the environment, and *overrides*.

    Process environment variables always win over YAML.  Explicit
    keyword *overrides* win over both.
    """
    yaml_values = _flatten(load_config(path))
    field_names = set(Settings.model_fields)

    merged: dict[str, Any] = {}
    for key, value in yaml_values.items():
        if key not in field_names:
            continue
        if key.upper() in os.environ:
            continue
        merged[key] = value

    _deep_merge(merged, overrides)
    return Settings(**merged)


def _flatten(config: dict[str, Any]) -> dict[str, Any]:
    """Turn ``{"chunking": {"min_size": 200}}`` into ``{"chunk_min_size": 200}``."""
    flat: dict[str, Any] = {}
    for section, values in config.items():
        if not isinstance(values, dict):
            flat[section] = values
            continue
        prefix = _SECTION_PREFIXES.get(section, section)
        for key, value in values.items():
            flat[f"{prefix}_{key}" if prefix else key] = value
    return flat


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
