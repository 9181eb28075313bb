"""
Durable structured memory for the agent.

``MemoryStore`` owns the short-term action log, the long-term knowledge
base and spatial memory. It is the only writer of that data: every
mutation goes through an async method that updates memory in place and
then rewrites ``agent_memory.json`` wholesale. Persistence failures are
logged and swallowed so the agent keeps running on in-memory state.

Every recorded action is also appended to a rotating JSONL audit log.
"""
import asyncio
import copy
import json
import math
import os
import re
import time
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Dict, List

from core.action_grammar import parse_action
from core.logging_utils import log_json
from core.memory_types import (
    ActionRecord,
    CompletedGoal,
    FailurePattern,
    SpatialObservation,
    StructuredMemory,
)
from core.outcomes import classify_failure_reason, indicates_failure
from core.vec3 import Vec3

# Maximum size (bytes) of the action log before rotation
_LOG_MAX_BYTES = int(os.getenv("CRAFTMIND_LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10 MB
_LOG_KEEP_ROTATIONS = 3  # number of rotated files to keep

_PLACED_RE = re.compile(r"Placed (\w+) at \((-?[\d.]+), (-?[\d.]+), (-?[\d.]+)\)")
_CRAFTED_RE = re.compile(r"Crafted (\d+) (\w+)")
_ATTACKED_RE = re.compile(r"Attacked (\w+)")


class MemoryStore:
    def __init__(
        self,
        path,
        action_log_path=None,
        max_recent_actions: int = 10,
        max_spatial_entries: int = 4096,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.log_path = Path(action_log_path) if action_log_path else None
        self.max_recent_actions = max_recent_actions
        self.max_spatial_entries = max_spatial_entries
        self._clock = clock
        self._memory = StructuredMemory()

    @property
    def memory(self) -> StructuredMemory:
        return self._memory

    def snapshot(self) -> StructuredMemory:
        """Deep copy safe to hand to stages as read-only state."""
        return copy.deepcopy(self._memory)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> StructuredMemory:
        """Load memory from disk. A missing or unreadable file means a fresh start."""
        if not self.path.exists():
            log_json("INFO", "memory_fresh_start", details={"path": str(self.path)})
            self._memory = StructuredMemory()
            return self._memory
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._memory = StructuredMemory.from_dict(data)
            log_json("INFO", "memory_loaded", details={
                "path": str(self.path),
                "recent_actions": len(self._memory.recent_actions),
                "spatial_entries": len(self._memory.spatial_memory),
            })
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            log_json("WARN", "memory_load_failed", details={"path": str(self.path), "error": str(exc)})
            self._memory = StructuredMemory()
        return self._memory

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self.path)

    async def save(self) -> None:
        payload = json.dumps(self._memory.to_dict(), indent=2)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as exc:
            log_json("ERROR", "memory_save_failed", details={"path": str(self.path), "error": str(exc)})

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_recent_action(self, action: str, result: str) -> None:
        record = ActionRecord(action=action or "", result=result or "", timestamp=self._clock())
        self._memory.recent_actions.append(record)
        if len(self._memory.recent_actions) > self.max_recent_actions:
            self._consolidate()
        self._append_audit(record)
        await self.save()

    async def record_completed_goal(self, goal: str) -> None:
        self._memory.knowledge_base.completed_goals.append(
            CompletedGoal(goal=goal, timestamp=self._clock())
        )
        log_json("INFO", "memory_goal_completed", goal=goal)
        await self.save()

    async def record_location(self, name: str, position: Vec3) -> None:
        self._set_location(name, position.x, position.y, position.z, self._clock())
        await self.save()

    async def update_spatial_memory(self, observations: Dict[str, SpatialObservation]) -> None:
        """Merge block observations keyed ``"x,y,z"``; newer observations replace older."""
        if not observations:
            return
        spatial = self._memory.spatial_memory
        for key, observation in observations.items():
            # Re-inserting moves the key to the newest end for eviction order.
            spatial.pop(key, None)
            spatial[key] = observation
        while len(spatial) > self.max_spatial_entries:
            spatial.pop(next(iter(spatial)))
        await self.save()

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    def _consolidate(self) -> None:
        recent = self._memory.recent_actions
        overflow = len(recent) - self.max_recent_actions
        remove_count = max(1, math.ceil(overflow + self.max_recent_actions / 4))
        aged_out = recent[:remove_count]
        del recent[:remove_count]
        for record in aged_out:
            self._extract_knowledge(record)
        log_json("INFO", "memory_consolidated", details={
            "moved": len(aged_out),
            "remaining": len(recent),
        })

    def _extract_knowledge(self, record: ActionRecord) -> None:
        kb = self._memory.knowledge_base
        action_type, args = parse_action(record.action)

        if indicates_failure(record.result):
            reason = classify_failure_reason(record.result)
            key = f"{action_type}:{reason}"
            pattern = kb.failure_patterns.setdefault(key, FailurePattern())
            pattern.count += 1
            pattern.last_timestamp = record.timestamp
            pattern.last_action = record.action
            return

        placed = _PLACED_RE.search(record.result)
        if placed:
            name, x, y, z = placed.groups()
            self._set_location(name, float(x), float(y), float(z), record.timestamp)

        if action_type == "moveToPosition" and record.result.startswith("Moved to position") and len(args) >= 3:
            try:
                x, y, z = (float(a) for a in args[:3])
            except ValueError:
                pass
            else:
                self._set_location("last_visited", x, y, z, record.timestamp)

        crafted = _CRAFTED_RE.search(record.result)
        if crafted:
            count, item = int(crafted.group(1)), crafted.group(2)
            entry = kb.recipe_knowledge.setdefault(item, {"crafted": 0, "last_timestamp": 0.0})
            entry["crafted"] += count
            entry["last_timestamp"] = record.timestamp

        attacked = _ATTACKED_RE.search(record.result)
        if attacked:
            entry = kb.entity_encounters.setdefault(attacked.group(1), {"count": 0, "last_timestamp": 0.0})
            entry["count"] += 1
            entry["last_timestamp"] = record.timestamp

    def _set_location(self, name: str, x: float, y: float, z: float, timestamp: float) -> None:
        self._memory.knowledge_base.locations[name] = {"x": x, "y": y, "z": z, "timestamp": timestamp}

    # ------------------------------------------------------------------
    # Summaries for prompts and chat
    # ------------------------------------------------------------------

    def recent_actions_summary(self, limit: int = 5) -> List[str]:
        return [f"{r.action} -> {r.result}" for r in self._memory.recent_actions[-limit:]]

    def long_term_summary(self) -> str:
        return summarize_long_term(self._memory)

    def spatial_memory_summary(self, limit: int = 10) -> str:
        return summarize_spatial(self._memory, limit)

    # ------------------------------------------------------------------
    # Audit log
    # ------------------------------------------------------------------

    def _append_audit(self, record: ActionRecord) -> None:
        if self.log_path is None:
            return
        try:
            self.append_log({"ts": record.timestamp, "action": record.action, "result": record.result})
        except OSError as exc:
            log_json("WARN", "action_log_write_failed", details={"error": str(exc)})

    def _rotate_log_if_needed(self) -> None:
        """Rotate the action log when it exceeds *_LOG_MAX_BYTES*.

        Keeps up to *_LOG_KEEP_ROTATIONS* copies named
        ``action_log.jsonl.1``, ``.2``, …  Older files are deleted.
        """
        if not self.log_path.exists():
            return
        if self.log_path.stat().st_size < _LOG_MAX_BYTES:
            return

        # Shift existing rotations down: .2 → .3, .1 → .2, etc.
        for i in range(_LOG_KEEP_ROTATIONS - 1, 0, -1):
            src = self.log_path.with_suffix(f".jsonl.{i}")
            dst = self.log_path.with_suffix(f".jsonl.{i + 1}")
            if src.exists():
                if dst.exists():
                    dst.unlink()
                src.rename(dst)

        self.log_path.rename(self.log_path.with_suffix(".jsonl.1"))

        excess = self.log_path.with_suffix(f".jsonl.{_LOG_KEEP_ROTATIONS + 1}")
        if excess.exists():
            excess.unlink()

    def append_log(self, entry: Dict[str, Any]) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self._rotate_log_if_needed()
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry) + "\n")

    def read_log(self, limit: int = 0) -> List[Dict[str, Any]]:
        if self.log_path is None or not self.log_path.exists():
            return []
        entries = []
        with self.log_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(json.loads(line))
                except json.JSONDecodeError:
                    continue
        return entries[-limit:] if limit > 0 else entries


def summarize_long_term(memory: StructuredMemory) -> str:
    """One line per knowledge category; used in planner prompts."""
    kb = memory.knowledge_base
    lines = []
    if kb.locations:
        places = ", ".join(
            f"{name} at {Vec3(loc['x'], loc['y'], loc['z'])}" for name, loc in kb.locations.items()
        )
        lines.append(f"Known locations: {places}")
    if kb.recipe_knowledge:
        crafted = ", ".join(f"{item} x{int(info['crafted'])}" for item, info in kb.recipe_knowledge.items())
        lines.append(f"Crafted items: {crafted}")
    if kb.entity_encounters:
        met = ", ".join(f"{name} ({int(info['count'])})" for name, info in kb.entity_encounters.items())
        lines.append(f"Entity encounters: {met}")
    if kb.completed_goals:
        goals = ", ".join(g.goal for g in kb.completed_goals[-5:])
        lines.append(f"Completed goals: {goals}")
    if kb.failure_patterns:
        worst = sorted(kb.failure_patterns.items(), key=lambda kv: kv[1].count, reverse=True)[:5]
        failures = ", ".join(f"{key} ({pattern.count})" for key, pattern in worst)
        lines.append(f"Repeated failures: {failures}")
    if not lines:
        return "No long-term knowledge yet."
    return "\n".join(lines)


def summarize_spatial(memory: StructuredMemory, limit: int = 10) -> str:
    if not memory.spatial_memory:
        return "No spatial observations yet."
    counts = Counter(obs.block_name for obs in memory.spatial_memory.values())
    common = ", ".join(f"{name} {count}" for name, count in counts.most_common(limit))
    return f"Observed {len(memory.spatial_memory)} blocks: {common}"

