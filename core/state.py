"""
The single value that flows through one observe/think/validate/act/analyse cycle.

Stages never mutate an ``AgentState``; they return a partial update (a dict
of field name → new value) that :meth:`AgentState.merge` folds in, later
values winning.
"""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from core.memory_types import StructuredMemory
from core.vec3 import Vec3

IDLE_GOAL = "Waiting for instructions"


@dataclass(frozen=True)
class Surroundings:
    nearby_blocks: Tuple[str, ...] = ()
    nearby_entities: Tuple[str, ...] = ()
    position: Vec3 = Vec3()
    health: float = 20.0
    food: float = 20.0
    time_of_day: int = 0
    is_day: bool = True
    biome: str = "unknown"
    is_sleeping: bool = False


@dataclass(frozen=True)
class AgentState:
    """Snapshot of everything a stage may read.

    Attributes:
        memory: Read-only copy of the memory store, refreshed by Act.
        inventory: Item name → count, replaced wholesale by Observe.
        current_plan: Remaining action strings; the head is the step being attempted.
    """
    memory: StructuredMemory = field(default_factory=StructuredMemory)
    inventory: Mapping[str, int] = field(default_factory=dict)
    surroundings: Surroundings = field(default_factory=Surroundings)
    current_goal: Optional[str] = IDLE_GOAL
    current_plan: Optional[Tuple[str, ...]] = None
    last_action: Optional[str] = None
    last_action_result: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return not self.current_goal or self.current_goal == IDLE_GOAL

    @property
    def plan_head(self) -> Optional[str]:
        return self.current_plan[0] if self.current_plan else None

    def merge(self, update: Optional[Dict[str, Any]]) -> "AgentState":
        """Return a new state with *update* applied; a key set to ``None`` clears the field."""
        if not update:
            return self
        update = dict(update)
        if update.get("current_plan") is not None:
            update["current_plan"] = tuple(update["current_plan"])
        return dataclasses.replace(self, **update)
