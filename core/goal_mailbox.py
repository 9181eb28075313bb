"""Single-slot handoff of externally requested goal changes to the agent loop."""
import threading
from dataclasses import dataclass
from typing import List, Optional, Tuple

from core.state import IDLE_GOAL


@dataclass(frozen=True)
class GoalUpdate:
    """A change requested from outside the cycle, e.g. by a chat command.

    Attributes:
        goal: New goal, or None to keep the current one.
        clear_plan: Drop the current plan when applied.
        clear_action: Drop the last action when applied.
        result: Text stored as ``last_action_result``.
    """
    goal: Optional[str] = None
    clear_plan: bool = True
    clear_action: bool = False
    result: Optional[str] = None

    def apply(self, state):
        update = {}
        if self.goal is not None:
            update["current_goal"] = self.goal
        if self.clear_plan:
            update["current_plan"] = None
        if self.clear_action:
            update["last_action"] = None
        if self.result is not None:
            update["last_action_result"] = self.result
        return state.merge(update)

    @classmethod
    def stop(cls, result: str = "Activity stopped by user.") -> "GoalUpdate":
        return cls(goal=IDLE_GOAL, clear_plan=True, clear_action=True, result=result)


class GoalMailbox:
    """
    Holds at most one pending :class:`GoalUpdate`; a newer post replaces an
    unread one. Memory notes queue up separately and are all delivered, in
    order, with the next take.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._pending: Optional[GoalUpdate] = None
        self._notes: List[Tuple[str, str]] = []

    def post(self, update: GoalUpdate) -> None:
        with self._lock:
            self._pending = update

    def note(self, action: str, result: str) -> None:
        with self._lock:
            self._notes.append((action, result))

    def take(self) -> Tuple[Optional[GoalUpdate], List[Tuple[str, str]]]:
        with self._lock:
            update, self._pending = self._pending, None
            notes, self._notes = self._notes, []
            return update, notes

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._pending is not None
