"""Runtime config loader (TOML) for svm_bridge tools."""

from __future__ import annotations

import copy
import os
import sys
import tomllib
from pathlib import Path
from typing import Any, Dict

from svm_bridge.params import DEFAULT_PARAMETERS

DEBUG_ENV = "SVM_BRIDGE_DEBUG"

_CONFIG_CACHE: Dict[str, Dict[str, Any]] = {}


def _debug_log(message: str) -> None:
    """Print optional debug logs when SVM_BRIDGE_DEBUG is enabled."""
    if os.environ.get(DEBUG_ENV):
        print(f"[runtime_config] {message}", file=sys.stderr)


DEFAULT_CONFIG: Dict[str, Any] = {
    "parameters": {
        "svm_type": DEFAULT_PARAMETERS["svm_type"].name,
        "kernel_type": DEFAULT_PARAMETERS["kernel_type"].name,
        "degree": DEFAULT_PARAMETERS["degree"],
        "gamma": DEFAULT_PARAMETERS["gamma"],
        "coef0": DEFAULT_PARAMETERS["coef0"],
        "cache_size": DEFAULT_PARAMETERS["cache_size"],
        "eps": DEFAULT_PARAMETERS["eps"],
        "C": DEFAULT_PARAMETERS["C"],
        "nu": DEFAULT_PARAMETERS["nu"],
        "p": DEFAULT_PARAMETERS["p"],
        "shrinking": DEFAULT_PARAMETERS["shrinking"],
        "probability": DEFAULT_PARAMETERS["probability"],
    },
    "cross_validation": {
        "folds": 5,
    },
    "engine": {
        "verbose": False,
    },
    "logging": {
        "enabled": False,
        "dir": ".svm-bridge/logs",
        "include_array_preview": False,
        "max_preview_items": 20,
    },
}


def _deep_merge_dict(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge dicts (override wins)."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge_dict(merged[key], value)
        else:
            merged[key] = value
    return merged


def _safe_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _normalize_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize config types and enforce minimal defaults.

    Parameter values are left as written; the parameter codec validates them
    when they are used.
    """
    normalized = _deep_merge_dict(DEFAULT_CONFIG, config)

    if not isinstance(normalized.get("parameters"), dict):
        _debug_log("[parameters] is not a table, fallback to defaults")
        normalized["parameters"] = copy.deepcopy(DEFAULT_CONFIG["parameters"])

    cv_cfg = normalized.get("cross_validation", {})
    if not isinstance(cv_cfg, dict):
        cv_cfg = {}
    folds = _safe_int(cv_cfg.get("folds", 5), 5)
    cv_cfg["folds"] = folds if folds >= 2 else 5
    normalized["cross_validation"] = cv_cfg

    engine_cfg = normalized.get("engine", {})
    if not isinstance(engine_cfg, dict):
        engine_cfg = {}
    engine_cfg["verbose"] = bool(engine_cfg.get("verbose", False))
    normalized["engine"] = engine_cfg

    logging_cfg = normalized.get("logging", {})
    if not isinstance(logging_cfg, dict):
        logging_cfg = {}
    logging_cfg["enabled"] = bool(logging_cfg.get("enabled", False))
    logging_cfg["dir"] = str(logging_cfg.get("dir", ".svm-bridge/logs"))
    logging_cfg["include_array_preview"] = bool(
        logging_cfg.get("include_array_preview", False)
    )
    logging_cfg["max_preview_items"] = _safe_int(logging_cfg.get("max_preview_items", 20), 20)
    normalized["logging"] = logging_cfg

    return normalized


def _load_toml_dict(config_file: Path) -> Dict[str, Any]:
    """Load TOML as dict, return empty dict on any failure."""
    if not config_file.exists():
        return {}

    try:
        raw = tomllib.loads(config_file.read_text(encoding="utf-8-sig"))
        return raw if isinstance(raw, dict) else {}
    except (OSError, UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
        _debug_log(f"load toml failed: path={config_file}, err={exc}")
        return {}


def _file_signature(path: Path) -> tuple[bool, int, int]:
    """Return (exists, mtime_ns, size) for cache invalidation."""
    try:
        stat = path.stat()
        return True, int(stat.st_mtime_ns), int(stat.st_size)
    except OSError:
        return False, 0, 0


def load_runtime_config(config_path: str = "config.toml") -> Dict[str, Any]:
    """Load runtime config with optional local override (``config.local.toml``)."""
    config_file = Path(config_path)
    local_file = config_file.with_name(f"{config_file.stem}.local{config_file.suffix}")
    cache_key = str(config_file.resolve())
    current_sig = (_file_signature(config_file), _file_signature(local_file))

    cache_entry = _CONFIG_CACHE.get(cache_key)
    if cache_entry and cache_entry.get("sig") == current_sig:
        return copy.deepcopy(cache_entry["config"])

    merged = copy.deepcopy(DEFAULT_CONFIG)
    merged = _deep_merge_dict(merged, _load_toml_dict(config_file))
    merged = _deep_merge_dict(merged, _load_toml_dict(local_file))
    normalized = _normalize_config(merged)
    _CONFIG_CACHE[cache_key] = {"sig": current_sig, "config": normalized}
    return copy.deepcopy(normalized)
