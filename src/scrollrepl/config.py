# ScrollREPL - Scrollback Log Console with Embedded REPL
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Configuration and data root resolution for ScrollREPL.

Handles:
- Packaged YAML defaults loading (scrollrepl.defaults/system.yaml)
- Dotted-path config access (YAMLConfig.get_path)
- Data root resolution (SCROLLREPL_DATA_HOME, ~/.local/share)
- Paths for the crash log and the persisted command history
"""

from __future__ import annotations

import os
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Any

import yaml

# Semantic UI intent for clear screen operations
UI_CLEAR = "__UI_CLEAR__"


# -----------------------
# Config model wrapper
# -----------------------


class YAMLConfig:
    """Simple config wrapper that implements ConfigModel protocol."""

    def __init__(self, config_dict: dict[str, Any]):
        self._config = config_dict

    def _section(self, name: str) -> dict[str, Any]:
        section = self._config.get(name, {})
        return section if isinstance(section, dict) else {}

    @property
    def console(self) -> dict[str, Any]:
        return self._section("console")

    @property
    def repl(self) -> dict[str, Any]:
        return self._section("repl")

    @property
    def ui(self) -> dict[str, Any]:
        return self._section("ui")

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def get_path(self, path: str, default: Any = None) -> Any:
        """
        Nested lookup using dot-separated path.
        Example: get_path("ui.theme.style", {}) -> dict style mapping
        """
        if not path:
            return default

        cur: Any = self._config
        for part in path.split("."):
            if not isinstance(cur, dict):
                return default
            if part not in cur:
                return default
            cur = cur[part]
        return cur


def merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overrides`` into a copy of ``base``."""
    out = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = merge(out[key], value)
        else:
            out[key] = value
    return out


# -----------------------
# Data root
# -----------------------


def get_data_root() -> Path:
    """Get the data root directory for ScrollREPL.

    Resolution order:
    1. SCROLLREPL_DATA_HOME environment variable (if set)
    2. ~/.local/share (default, XDG_DATA_HOME is ignored)
    """
    data_home = os.getenv("SCROLLREPL_DATA_HOME")
    if data_home:
        root = Path(data_home)
    else:
        root = Path.home() / ".local" / "share"

    root.mkdir(parents=True, exist_ok=True)
    return root


def logs_dir(data_root: Path) -> Path:
    """<data_root>/scrollrepl/logs"""
    return data_root / "scrollrepl" / "logs"


def history_path(data_root: Path, filename: str = "history.json") -> Path:
    """<data_root>/scrollrepl/<filename>"""
    return data_root / "scrollrepl" / filename


# -----------------------
# Packaged defaults loading
# -----------------------


def _defaults_dir() -> Path:
    """Return the installed path to the packaged defaults directory."""
    return Path(
        importlib_resources.files("scrollrepl.defaults")
    )  # type: ignore[arg-type]


def load_defaults_yaml(filename: str) -> dict[str, Any]:
    """
    Load a YAML file from scrollrepl/defaults/.
    """
    defaults_dir = _defaults_dir()
    path = defaults_dir / filename
    if not path.exists():
        raise FileNotFoundError(
            f"Missing defaults YAML: {filename} "
            f"(looked in {defaults_dir})"
        )

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Defaults YAML {filename} must load to a mapping/dict."
        )
    return data


def load_system_config(
    overrides: dict[str, Any] | None = None,
) -> YAMLConfig:
    """
    Load system.yaml from packaged defaults and return a YAMLConfig wrapper.

    ``overrides`` (e.g. from the embedding program) are merged on top.
    """
    data = load_defaults_yaml("system.yaml")
    if overrides:
        data = merge(data, overrides)
    return YAMLConfig(data)
