"""Configuration loading utilities for the mailbox skill.

This module handles layered configuration:
1. Explicit path argument (highest precedence)
2. Environment variable MAIL_SKILL_CONFIG
3. Fallback to "config/default.yaml"

It also supports optional overrides from environment variables with prefix
``MAIL_SKILL__`` (e.g., MAIL_SKILL__STORE__PATH=/tmp/mailbox.db).
"""

from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "MAIL_SKILL_CONFIG"
ENV_PREFIX = "MAIL_SKILL__"

DEFAULTS: Dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 8080,
        "webhook_path": "/",
        "gzip_min_size": 1024,
    },
    "logging": {"level": "info"},
    "store": {"backend": "sqlite", "path": "data/mailbox.db"},
}


def _merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``extra`` into a copy of ``base``."""
    out = copy.deepcopy(base)
    for key, value in extra.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def _coerce(value: str) -> Any:
    if value.lower() in {"true", "false"}:
        return value.lower() == "true"
    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _apply_env_overrides(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides with prefix MAIL_SKILL__."""
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        # e.g., MAIL_SKILL__STORE__PATH -> cfg["store"]["path"]
        parts = key[len(ENV_PREFIX):].lower().split("__")
        sub = cfg
        for p in parts[:-1]:
            if p not in sub or not isinstance(sub[p], dict):
                sub[p] = {}
            sub = sub[p]
        sub[parts[-1]] = _coerce(value)
    return cfg


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load YAML configuration for the skill server.

    Parameters
    ----------
    path : str | None
        Optional path to a configuration file. If not provided, the
        environment variable ``MAIL_SKILL_CONFIG`` is consulted. As a
        last resort ``config/default.yaml`` is used.

    Returns
    -------
    Dict[str, Any]
        Defaults, overlaid with the file contents, with environment
        overrides applied.
    """
    if path is None:
        path = os.environ.get(ENV_CONFIG_PATH, "config/default.yaml")

    path_obj = Path(path)
    if not path_obj.exists():
        logger.warning("Config file not found at %s. Using defaults.", path_obj)
        return _apply_env_overrides(copy.deepcopy(DEFAULTS))

    with path_obj.open("r", encoding="utf-8") as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise RuntimeError(f"Failed to parse config file {path_obj}: {e}") from e

    if not isinstance(loaded, dict):
        raise RuntimeError(f"Invalid config format in {path_obj}, expected dict.")

    return _apply_env_overrides(_merge(DEFAULTS, loaded))


def configure_logging(level: str = "info") -> None:
    """Set up root logging at a named level ("debug", "INFO", ...)."""
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
