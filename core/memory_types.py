"""
Data types for the agent's structured memory.

Short-term memory is the bounded list of recent action records. Long-term
memory is the knowledge base distilled from records that age out of the
short-term list. Spatial memory maps integer block coordinates to the
last observation made there.
"""
from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List


@dataclass
class ActionRecord:
    """One executed action and its textual outcome."""
    action: str
    result: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class FailurePattern:
    """A recurring ``actionType:reason`` failure seen during consolidation."""
    count: int = 0
    last_timestamp: float = 0.0
    last_action: str = ""


@dataclass
class CompletedGoal:
    goal: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class SpatialObservation:
    block_name: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class KnowledgeBase:
    # name → {"x", "y", "z", "timestamp"}
    locations: Dict[str, Dict[str, float]] = field(default_factory=dict)
    # item → {"crafted", "last_timestamp"}
    recipe_knowledge: Dict[str, Dict[str, float]] = field(default_factory=dict)
    # entity → {"count", "last_timestamp"}
    entity_encounters: Dict[str, Dict[str, float]] = field(default_factory=dict)
    completed_goals: List[CompletedGoal] = field(default_factory=list)
    failure_patterns: Dict[str, FailurePattern] = field(default_factory=dict)


@dataclass
class StructuredMemory:
    recent_actions: List[ActionRecord] = field(default_factory=list)
    knowledge_base: KnowledgeBase = field(default_factory=KnowledgeBase)
    spatial_memory: Dict[str, SpatialObservation] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        kb = self.knowledge_base
        return {
            "short_term": {
                "recent_actions": [asdict(r) for r in self.recent_actions],
            },
            "long_term": {
                "knowledge_base": {
                    "locations": kb.locations,
                    "recipe_knowledge": kb.recipe_knowledge,
                    "entity_encounters": kb.entity_encounters,
                    "completed_goals": [asdict(g) for g in kb.completed_goals],
                    "failure_patterns": {k: asdict(p) for k, p in kb.failure_patterns.items()},
                },
            },
            "spatial_memory": {k: asdict(o) for k, o in self.spatial_memory.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StructuredMemory":
        """Rebuild memory from its persisted form; missing sections default to empty."""
        short_term = data.get("short_term") or {}
        kb_data = (data.get("long_term") or {}).get("knowledge_base") or {}
        kb = KnowledgeBase(
            locations=dict(kb_data.get("locations") or {}),
            recipe_knowledge=dict(kb_data.get("recipe_knowledge") or {}),
            entity_encounters=dict(kb_data.get("entity_encounters") or {}),
            completed_goals=[CompletedGoal(**g) for g in kb_data.get("completed_goals") or []],
            failure_patterns={
                k: FailurePattern(**p) for k, p in (kb_data.get("failure_patterns") or {}).items()
            },
        )
        return cls(
            recent_actions=[ActionRecord(**r) for r in short_term.get("recent_actions") or []],
            knowledge_base=kb,
            spatial_memory={
                k: SpatialObservation(**o) for k, o in (data.get("spatial_memory") or {}).items()
            },
        )
