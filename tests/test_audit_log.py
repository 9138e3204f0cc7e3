"""Audit logging tests for svm_bridge command runs."""

from __future__ import annotations

import json
import sys
import tempfile
import unittest
from pathlib import Path

import numpy as np

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from svm_bridge.utils.audit_log import AuditLogConfig, AuditLogger, array_meta


class TestAuditLog(unittest.TestCase):
    """Covers standalone logger behavior."""

    def test_array_meta_contains_hash_and_preview(self) -> None:
        values = np.arange(12, dtype=np.float64).reshape(3, 4)
        meta = array_meta(values, include_preview=True, max_preview_items=5)
        self.assertEqual(meta["shape"], [3, 4])
        self.assertEqual(meta["dtype"], "float64")
        self.assertEqual(meta["preview"], [0.0, 1.0, 2.0, 3.0, 4.0])
        self.assertEqual(len(meta["sha256"]), 64)

        same = array_meta(values.copy(), include_preview=False, max_preview_items=5)
        self.assertEqual(same["sha256"], meta["sha256"])
        self.assertNotIn("preview", same)

    def test_config_from_runtime_config(self) -> None:
        config = AuditLogConfig.from_runtime_config(
            {"logging": {"enabled": True, "dir": "logs", "max_preview_items": 0}}
        )
        self.assertTrue(config.enabled)
        self.assertEqual(config.log_dir, "logs")
        self.assertEqual(config.max_preview_items, 20)
        self.assertFalse(AuditLogConfig.from_runtime_config({"logging": 1}).enabled)

    def test_disabled_logger_writes_nothing(self) -> None:
        logger = AuditLogger(AuditLogConfig())
        logger.log("run.started", {"command": "train"})
        logger.finalize(status="success", summary={})
        self.assertFalse(logger.enabled)
        self.assertIsNone(logger.log_file)

    def test_logger_writes_jsonl_and_summary(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            logger = AuditLogger(
                AuditLogConfig(
                    enabled=True,
                    log_dir=tmp_dir,
                    include_array_preview=True,
                    max_preview_items=3,
                ),
                seed=42,
            )
            logger.log("run.started", {"command": "train"})
            logger.log(
                "train.started",
                {"samples": logger.array_meta(np.ones((4, 2))), "C": np.float64(2.0)},
            )
            logger.finalize(status="success", summary={"command": "train", "n_sv": np.int32(3)})

            self.assertIsNotNone(logger.log_file)
            self.assertIsNotNone(logger.summary_file)
            assert logger.log_file is not None
            assert logger.summary_file is not None

            self.assertTrue(logger.log_file.exists())
            self.assertTrue(logger.summary_file.exists())

            lines = [
                json.loads(line)
                for line in logger.log_file.read_text(encoding="utf-8").splitlines()
            ]
            self.assertEqual(len(lines), 3)
            self.assertEqual(lines[0]["event"], "run.started")
            self.assertEqual(lines[1]["payload"]["samples"]["preview"], [1.0, 1.0, 1.0])
            self.assertEqual(lines[1]["payload"]["C"], 2.0)
            self.assertEqual(lines[-1]["event"], "run.finalized")
            self.assertEqual(lines[-1]["seed"], 42)

            summary = json.loads(logger.summary_file.read_text(encoding="utf-8"))
            self.assertEqual(summary["status"], "success")
            self.assertEqual(summary["n_sv"], 3)
            self.assertEqual(summary["run_id"], logger.run_id)


if __name__ == "__main__":
    unittest.main()
