"""Agent configuration loader for device-rename.

Resolution order (first match wins):
  1. --config <path> CLI flag (explicit_path argument)
  2. DEVICE_RENAME_CONFIG environment variable
  3. Local system file:
       Windows: %PROGRAMDATA%\\DeviceRename\\agent.yaml
       Other:   /etc/device-rename/agent.yaml

No file at all is fine: the built-in defaults are a complete configuration.

Placeholder expansion:
  String values in the config may contain %VARNAME% tokens (Windows env-var
  style). These are expanded using the current process environment.
  Example: transcript_dir: %PROGRAMDATA%\\DeviceRename\\Logs\\%COMPUTERNAME%
"""

from __future__ import annotations

import copy
import os
import re
import sys
from pathlib import Path
from typing import Any

_CONFIG_ENV = "DEVICE_RENAME_CONFIG"


def _data_dir() -> str:
    """Return the platform-specific directory for installed files and state."""
    if sys.platform == "win32":
        return "%PROGRAMDATA%\\DeviceRename"
    return "/var/lib/device-rename"


# Default config schema with all supported keys and their default values.
_DEFAULTS: dict[str, Any] = {
    "naming": {
        "identity_source":         "serial",  # serial | asset_tag
        "hardware_segment_length": 13,
        # chassis class -> literal prefix, e.g. {desktop: "D", laptop: "L"}
        "chassis_prefix":          {},
    },
    "filter": {
        "name_prefix": None,
    },
    "provisioning": {
        "placeholder_users": ["defaultuser0", "defaultuser1"],
    },
    "restart": {
        "delay_seconds": 600,
        "message": (
            "This computer has been renamed and will restart in 10 minutes. "
            "Please save your work."
        ),
    },
    "scheduler": {
        "task_name":                 "DeviceRename-Reconcile",
        "daily_at":                  "12:00",
        "logon_delay_max_minutes":   30,
        "startup_delay_max_minutes": 30,
        "install_dir":               None,
    },
    "paths": {
        "transcript_dir":     None,
        "keep_transcripts":   20,
        "tag_file":           None,
        "lock_file":          None,
        "lock_stale_minutes": 60,
    },
}

# Filled in from _data_dir() when the config leaves them unset
_PATH_DEFAULTS = {
    ("scheduler", "install_dir"): "bin",
    ("paths", "transcript_dir"):  "Logs",
    ("paths", "tag_file"):        "DeviceRename.tag",
    ("paths", "lock_file"):       "run.lock",
}


# ── path helpers ──────────────────────────────────────────────────────────────

def _local_config_path() -> Path:
    if sys.platform == "win32":
        base = os.environ.get("PROGRAMDATA", r"C:\ProgramData")
        return Path(base) / "DeviceRename" / "agent.yaml"
    return Path("/etc/device-rename/agent.yaml")


# ── YAML loading ──────────────────────────────────────────────────────────────

def _load_yaml(path: Path) -> dict:
    """Load a YAML file and return its top-level mapping."""
    import yaml
    with open(path, encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a YAML mapping, got {type(data).__name__}: {path}")
    return data


# ── merging and expansion ─────────────────────────────────────────────────────

def _deep_merge(base: dict, override: dict) -> dict:
    """Return a new dict with override merged recursively into base."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


_PLACEHOLDER_RE = re.compile(r"%([A-Za-z0-9_]+)%")


def _build_expansion_map() -> dict[str, str]:
    """Build a token -> value map from the environment.

    COMPUTERNAME and PROGRAMDATA are always present so default paths expand
    on every platform.
    """
    import socket

    mapping: dict[str, str] = dict(os.environ)
    if "COMPUTERNAME" not in mapping:
        mapping["COMPUTERNAME"] = socket.gethostname().split(".")[0].upper()
    if "PROGRAMDATA" not in mapping:
        mapping["PROGRAMDATA"] = r"C:\ProgramData" if sys.platform == "win32" else "/var/lib"
    return mapping


def _expand_placeholder(value: str, _map: dict[str, str] | None = None) -> str:
    """Expand %VARNAME% tokens; unknown tokens are left unchanged."""
    if _map is None:
        _map = _build_expansion_map()

    def _replace(m: re.Match) -> str:
        return _map.get(m.group(1), m.group(0))

    return _PLACEHOLDER_RE.sub(_replace, value)


def _expand_strings(obj: Any, _map: dict[str, str] | None = None) -> None:
    """Recursively expand %VARNAME% placeholders in all string values (in-place)."""
    if _map is None:
        _map = _build_expansion_map()
    if isinstance(obj, dict):
        for key, val in obj.items():
            if isinstance(val, str):
                obj[key] = _expand_placeholder(val, _map)
            else:
                _expand_strings(val, _map)
    elif isinstance(obj, list):
        for i, val in enumerate(obj):
            if isinstance(val, str):
                obj[i] = _expand_placeholder(val, _map)
            else:
                _expand_strings(val, _map)


def _fill_path_defaults(config: dict) -> None:
    sep = "\\" if sys.platform == "win32" else "/"
    for (section, key), leaf in _PATH_DEFAULTS.items():
        if not config[section].get(key):
            config[section][key] = f"{_data_dir()}{sep}{leaf}"


def _validate(config: dict) -> None:
    source = config["naming"]["identity_source"]
    if source not in ("serial", "asset_tag"):
        raise ValueError(f"naming.identity_source must be 'serial' or 'asset_tag', got {source!r}")
    if not isinstance(config["naming"]["chassis_prefix"], dict):
        raise ValueError("naming.chassis_prefix must be a mapping of chassis class to prefix")
    if int(config["naming"]["hardware_segment_length"]) < 1:
        raise ValueError("naming.hardware_segment_length must be at least 1")
    if int(config["restart"]["delay_seconds"]) < 0:
        raise ValueError("restart.delay_seconds must not be negative")


# ── public API ────────────────────────────────────────────────────────────────

def load_config(explicit_path: str | None = None) -> dict:
    """Load, validate, and return the resolved agent configuration dict.

    Args:
        explicit_path: Path passed via ``--config``. When provided, this is
            used exclusively and an error is raised if the file is missing.
            If ``None`` the auto-resolution chain is used.

    Returns:
        Config dict deeply merged over ``_DEFAULTS``, with default paths
        filled in and all ``%VARNAME%`` placeholders expanded.

    Raises:
        FileNotFoundError: If ``explicit_path`` is given but does not exist.
        ValueError: If the YAML file is not a mapping or a value is invalid.
    """
    raw: dict = {}

    if explicit_path is not None:
        p = Path(explicit_path)
        if not p.exists():
            raise FileNotFoundError(f"Config file not found: {p}")
        raw = _load_yaml(p)
    else:
        env_path_str = os.environ.get(_CONFIG_ENV)
        if env_path_str:
            env_p = Path(env_path_str)
            if env_p.exists():
                raw = _load_yaml(env_p)
            else:
                print(
                    f"  [config] Warning: {_CONFIG_ENV} points to missing file: {env_p}",
                    flush=True,
                )

        if not raw:
            local = _local_config_path()
            if local.exists():
                raw = _load_yaml(local)
                print(f"  [config] Loaded from local: {local}", flush=True)

    config = _deep_merge(copy.deepcopy(_DEFAULTS), raw)
    _fill_path_defaults(config)
    _expand_strings(config)
    _validate(config)
    return config
