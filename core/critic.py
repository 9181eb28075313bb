"""Heuristics Think consults: goal completion and survival interrupts."""
import re
from typing import List, Optional, Tuple

from core.game_data import LOG_TYPES
from core.world import is_daytime, is_night

_COLLECT_RE = re.compile(r"collect\s+(\d+)\s+([a-z_]+)", re.IGNORECASE)
_CRAFT_RE = re.compile(r"craft\s+(\d+|an?)\s+([a-z_]+)", re.IGNORECASE)
_SLEEP_GOAL_RE = re.compile(r"\b(sleep|rest)\b", re.IGNORECASE)
_EXPLORE_GOAL_RE = re.compile(r"\bexplor", re.IGNORECASE)

PLAYER_COMMAND_PREFIX = "Player command"
_GENERIC_WOOD = ("wood", "log", "logs")


class Critic:
    def __init__(self, explore_goal_action_count: int = 10, auto_sleep: bool = True):
        self.explore_goal_action_count = explore_goal_action_count
        self.auto_sleep = auto_sleep

    # ------------------------------------------------------------------
    # Goal completion
    # ------------------------------------------------------------------

    def goal_achieved(self, state) -> bool:
        goal = state.current_goal or ""
        if state.is_idle:
            return False

        requirements = self._item_requirements(goal)
        if requirements:
            return all(self._count(state, item) >= needed for item, needed in requirements)

        if _SLEEP_GOAL_RE.search(goal):
            return state.surroundings.is_sleeping or "sleeping" in (state.last_action_result or "").lower()

        if _EXPLORE_GOAL_RE.search(goal):
            return self._actions_since_player_command(state) >= self.explore_goal_action_count

        return False

    @staticmethod
    def _item_requirements(goal: str) -> List[Tuple[str, int]]:
        requirements = [(m.group(2).lower(), int(m.group(1))) for m in _COLLECT_RE.finditer(goal)]
        for m in _CRAFT_RE.finditer(goal):
            amount = m.group(1).lower()
            requirements.append((m.group(2).lower(), 1 if amount in ("a", "an") else int(amount)))
        return requirements

    @staticmethod
    def _count(state, item: str) -> int:
        if item in _GENERIC_WOOD:
            return sum(int(state.inventory.get(log, 0)) for log in LOG_TYPES)
        return int(state.inventory.get(item, 0))

    @staticmethod
    def _actions_since_player_command(state) -> int:
        count = 0
        for record in reversed(state.memory.recent_actions):
            if record.action.startswith(PLAYER_COMMAND_PREFIX):
                break
            count += 1
        return count

    # ------------------------------------------------------------------
    # Survival
    # ------------------------------------------------------------------

    def survival_action(self, state) -> Optional[str]:
        """``sleep`` at night near a bed, ``wakeUp`` in daytime, else None."""
        if not self.auto_sleep:
            return None
        s = state.surroundings
        last_action = state.last_action or ""
        last_result = (state.last_action_result or "").lower()

        if s.is_sleeping:
            return "wakeUp" if is_daytime(s.time_of_day) else None

        just_failed_to_sleep = last_action == "sleep" and "fail" in last_result
        bed_nearby = any(name.endswith("_bed") for name in s.nearby_blocks)
        if is_night(s.time_of_day) and bed_nearby and not just_failed_to_sleep:
            return "sleep"
        return None
