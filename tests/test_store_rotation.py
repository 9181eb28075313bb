"""Tests for MemoryStore audit log rotation in memory/store.py."""
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from memory.store import MemoryStore, _LOG_KEEP_ROTATIONS

SMALL_LOG = 256


class TestStoreRotation(unittest.TestCase):
    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.store = MemoryStore(self.tmpdir / "agent_memory.json",
                                 action_log_path=self.tmpdir / "memory" / "action_log.jsonl")
        self.store.log_path.parent.mkdir(parents=True, exist_ok=True)
        patcher = patch("memory.store._LOG_MAX_BYTES", SMALL_LOG)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _log_rotation_path(self, n: int) -> str:
        return str(self.store.log_path) + f".{n}"

    def _seed_large_file(self) -> None:
        with open(self.store.log_path, "w") as f:
            f.write("x" * (SMALL_LOG + 1))

    # ── No rotation below threshold ──────────────────────────────────────────

    def test_no_rotation_below_max_bytes(self):
        self.store.append_log({"action": "lookAround", "result": "ok"})
        self.assertFalse(os.path.exists(self._log_rotation_path(1)))

    # ── Rotation at threshold ─────────────────────────────────────────────────

    def test_rotation_triggered_at_max_bytes(self):
        self._seed_large_file()
        self.store.append_log({"action": "after_threshold"})
        self.assertTrue(os.path.exists(self._log_rotation_path(1)))

    def test_rotation_clears_current_log(self):
        self._seed_large_file()
        self.store.append_log({"action": "fresh"})
        content = self.store.log_path.read_text()
        self.assertIn("fresh", content)
        self.assertLess(len(content), SMALL_LOG)

    # ── Multiple rotations ────────────────────────────────────────────────────

    def test_rotations_capped_at_keep_count(self):
        for _ in range(_LOG_KEEP_ROTATIONS + 2):
            self._seed_large_file()
            self.store.append_log({"action": "tick"})
        for n in range(1, _LOG_KEEP_ROTATIONS + 1):
            self.assertTrue(os.path.exists(self._log_rotation_path(n)))
        self.assertFalse(os.path.exists(self._log_rotation_path(_LOG_KEEP_ROTATIONS + 1)))

    def test_read_log_skips_garbage_lines(self):
        self.store.append_log({"action": "a"})
        with open(self.store.log_path, "a") as f:
            f.write("not json\n\n")
        self.store.append_log({"action": "b"})
        self.assertEqual([e["action"] for e in self.store.read_log()], ["a", "b"])
        self.assertEqual([e["action"] for e in self.store.read_log(limit=1)], ["b"])


if __name__ == "__main__":
    unittest.main()
