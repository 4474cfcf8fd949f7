"""Configuration loading and validation for alertbeat."""

import copy
import math
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from alertbeat.models import Settings

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ms|s|m|h)")

_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


DEFAULT_CONFIG: Dict[str, Any] = {
    "check_uuid": "",
    "healthchecks_url": "https://hc-ping.com",
    "prometheus_url": "",
    "timeout": "30s",
    "interval": "5m",
}


def default_config_path() -> Path:
    """Return the default config file path."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "alertbeat" / "config.yaml"


def parse_duration(value: Union[str, int, float]) -> float:
    """Convert a duration like ``30s``, ``5m`` or ``1h30m`` to seconds.

    Units are ``ms``, ``s``, ``m`` and ``h`` and may be combined.  Plain
    numbers (or numeric strings) are taken as seconds.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ValueError(f"Invalid duration '{value}'")
        return seconds

    pos = 0
    total = 0.0
    for match in _DURATION_PART_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    if not text or pos != len(text):
        raise ValueError(
            f"Invalid duration '{value}'. Use format like 30s, 5m, 1h30m."
        )
    return total


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base, returning a new dict."""
    result = copy.deepcopy(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def _expand_env_vars(obj):
    """Recursively expand ${VAR} references in string values."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from YAML file, merged with defaults.

    String values containing ``${VAR}`` are expanded from environment
    variables.  Unset variables are left as-is.  A missing file yields
    the defaults.
    """
    path = path or default_config_path()
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(path, "r") as f:
        user_config = yaml.safe_load(f) or {}
    if not isinstance(user_config, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    merged = deep_merge(DEFAULT_CONFIG, user_config)
    return _expand_env_vars(merged)


def validate_config(config: Dict[str, Any]) -> list:
    """Validate config and return a list of error strings (empty = valid)."""
    errors = []

    if not config.get("check_uuid"):
        errors.append("check_uuid is required")

    for key in ("prometheus_url", "healthchecks_url"):
        url = config.get(key)
        if not url:
            errors.append(f"{key} is required")
        elif not isinstance(url, str) or not url.startswith(("http://", "https://")):
            errors.append(f"{key} must be an http(s) URL, got '{url}'")

    for key in ("timeout", "interval"):
        try:
            seconds = parse_duration(config.get(key))
        except (TypeError, ValueError) as e:
            errors.append(f"{key}: {e}")
            continue
        if seconds <= 0:
            errors.append(f"{key} must be positive, got '{config.get(key)}'")

    return errors


def build_settings(config: Dict[str, Any]) -> Settings:
    """Turn a validated config dict into immutable :class:`Settings`."""
    return Settings(
        check_uuid=str(config["check_uuid"]),
        prometheus_url=str(config["prometheus_url"]),
        healthchecks_url=str(config["healthchecks_url"]),
        timeout=parse_duration(config["timeout"]),
        interval=parse_duration(config["interval"]),
    )
