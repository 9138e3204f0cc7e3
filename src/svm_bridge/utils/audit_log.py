"""Audit logging utilities for svm_bridge command runs."""

from __future__ import annotations

import hashlib
import json
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np


def _utc_now_iso() -> str:
    """Return current UTC timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def _safe_int(value: Any, fallback: int) -> int:
    """Best-effort int conversion."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return fallback
    return parsed if parsed > 0 else fallback


def _json_default(value: Any) -> Any:
    """Serialize numpy scalars, arrays and enums."""
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, Path):
        return str(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def array_meta(values: Any, *, include_preview: bool, max_preview_items: int) -> Dict[str, Any]:
    """Build debugging metadata for an array payload."""
    array = np.ascontiguousarray(np.asarray(values))
    meta: Dict[str, Any] = {
        "shape": list(array.shape),
        "dtype": str(array.dtype),
        "sha256": hashlib.sha256(array.tobytes()).hexdigest(),
    }
    if include_preview:
        meta["preview"] = array.ravel()[: _safe_int(max_preview_items, 20)].tolist()
    return meta


@dataclass
class AuditLogConfig:
    """Runtime configuration for audit logging."""

    enabled: bool = False
    log_dir: str = ".svm-bridge/logs"
    include_array_preview: bool = False
    max_preview_items: int = 20

    @classmethod
    def from_runtime_config(cls, runtime_config: Dict[str, Any]) -> "AuditLogConfig":
        """Load logger config from `[logging]`."""
        raw = runtime_config.get("logging", {})
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            enabled=bool(raw.get("enabled", False)),
            log_dir=str(raw.get("dir", ".svm-bridge/logs")),
            include_array_preview=bool(raw.get("include_array_preview", False)),
            max_preview_items=_safe_int(raw.get("max_preview_items", 20), 20),
        )


class AuditLogger:
    """Append-only JSONL logger for one command run."""

    def __init__(self, config: AuditLogConfig, *, seed: Optional[int] = None) -> None:
        self._enabled = bool(config.enabled)
        self._include_array_preview = bool(config.include_array_preview)
        self._max_preview_items = _safe_int(config.max_preview_items, 20)
        self.run_id = uuid.uuid4().hex
        if seed is None:
            self.seed = secrets.randbits(32)
        else:
            try:
                self.seed = int(seed)
            except (TypeError, ValueError):
                self.seed = secrets.randbits(32)
        self._created_at = _utc_now_iso()
        self.log_file: Optional[Path] = None
        self.summary_file: Optional[Path] = None

        if not self._enabled:
            return

        base_dir = Path(config.log_dir)
        if not base_dir.is_absolute():
            base_dir = Path.cwd() / base_dir
        base_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        file_stem = f"{timestamp}_{self.run_id}"
        self.log_file = base_dir / f"{file_stem}.jsonl"
        self.summary_file = base_dir / f"{file_stem}.summary.json"

    @property
    def enabled(self) -> bool:
        """Whether logger is enabled."""
        return self._enabled

    def array_meta(self, values: Any) -> Dict[str, Any]:
        """Array metadata using this logger's preview settings."""
        return array_meta(
            values,
            include_preview=self._include_array_preview,
            max_preview_items=self._max_preview_items,
        )

    def _write_jsonl(self, record: Dict[str, Any]) -> None:
        if not self._enabled or self.log_file is None:
            return
        try:
            with self.log_file.open("a", encoding="utf-8") as fp:
                fp.write(json.dumps(record, ensure_ascii=False, default=_json_default) + "\n")
        except (OSError, TypeError):
            # Logging failures must not break main workflow.
            return

    def log(self, event: str, payload: Dict[str, Any]) -> None:
        """Write one structured event."""
        if not self._enabled:
            return
        record = {
            "ts": _utc_now_iso(),
            "run_id": self.run_id,
            "seed": self.seed,
            "event": event,
            "payload": payload,
        }
        self._write_jsonl(record)

    def finalize(self, *, status: str, summary: Dict[str, Any]) -> None:
        """Write run summary and final JSON event."""
        if not self._enabled:
            return

        payload = {
            "status": status,
            "started_at": self._created_at,
            "ended_at": _utc_now_iso(),
            "seed": self.seed,
            **summary,
        }
        self.log("run.finalized", payload)

        if self.summary_file is None:
            return
        try:
            self.summary_file.write_text(
                json.dumps(
                    {
                        "run_id": self.run_id,
                        "seed": self.seed,
                        **payload,
                    },
                    ensure_ascii=False,
                    indent=2,
                    default=_json_default,
                ),
                encoding="utf-8",
            )
        except (OSError, TypeError):
            return
