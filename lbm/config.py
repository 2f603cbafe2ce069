"""Load and validate YAML job configuration files."""
from __future__ import annotations

import os

import yaml

from lbm.log import LEVELS
from lbm.models import ErrorKind, JobConfig

LOG_LEVEL_ENV = "LBM_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"


class ConfigError(Exception):
    kind = ErrorKind.FATAL_CONFIG


def _name(raw: dict, key: str, default: str) -> str:
    value = raw.get(key, default)
    name = str(value).strip() if value is not None else ""
    if not name:
        raise ConfigError(f"'{key}' must not be empty")
    if "/" in name or ":" in name:
        raise ConfigError(f"'{key}' must not contain '/' or ':': {name!r}")
    return name


def _name_list(raw: dict, key: str) -> list[str]:
    value = raw.get(key) or []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list of remote names")
    names = []
    for entry in value:
        name = str(entry).strip() if entry is not None else ""
        if not name:
            raise ConfigError(f"Invalid remote entry in '{key}': {entry!r}")
        names.append(name)
    return names


def parse_log_level(value: str) -> str:
    """Normalize a log level name. Raises ConfigError if it is not one of LEVELS."""
    level = str(value).strip().upper()
    if level not in LEVELS:
        raise ConfigError(
            f"Invalid log level {value!r} (expected one of: {', '.join(LEVELS)})"
        )
    return level


def load_job(path: str) -> JobConfig:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    # An empty file means "all defaults"
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config must be a YAML mapping: {path}")

    lxc = str(raw.get("lxc") or "").strip() or "lxc"

    # --- suffix ---
    suffix = raw.get("backup_suffix", "-backup")
    if not suffix:
        raise ConfigError("'backup_suffix' must not be empty")
    suffix = str(suffix)
    if "/" in suffix or ":" in suffix:
        raise ConfigError(f"'backup_suffix' must not contain '/' or ':': {suffix!r}")

    # --- storage pool ---
    pool = raw.get("storage_pool")
    if pool is not None:
        pool = _name(raw, "storage_pool", "")

    # --- log level ---
    log_level = raw.get("log_level")
    if log_level is not None:
        log_level = parse_log_level(log_level)

    return JobConfig(
        lxc=lxc,
        local_remote=_name(raw, "local_remote", "local"),
        snapshot_name=_name(raw, "snapshot_name", "backup"),
        backup_suffix=suffix,
        storage_pool=pool,
        include_remotes=_name_list(raw, "include_remotes"),
        exclude_remotes=_name_list(raw, "exclude_remotes"),
        log_level=log_level,
    )


def resolve_log_level(flag: str | None, config: JobConfig, environ=None) -> str:
    """Pick the effective log level: flag > environment > job file > INFO."""
    environ = os.environ if environ is None else environ
    for value in (flag, environ.get(LOG_LEVEL_ENV), config.log_level):
        if value:
            return parse_log_level(value)
    return DEFAULT_LOG_LEVEL
