import random
from typing import Any, Dict, Optional

from core.action_grammar import help_request
from core.logging_utils import log_json
from core.outcomes import is_failure
from core.state import IDLE_GOAL

GOAL_ACHIEVED_QUESTION = "The goal has been achieved! What would you like me to do next?"
IDLE_QUESTION = "What would you like me to do next?"
PLANNER_STUCK_QUESTION = "I seem to be stuck or the planner failed. What should I do?"
NEW_GOAL_PREFIX = "New goal received"


class ThinkStage:
    """
    Decides the next action: keep following the plan, replan, or ask for help.

    Attributes:
        last_failed_action: Action whose failures are being counted.
        consecutive_failures: Failures of ``last_failed_action`` in a row.
        idle_help_requests: Help requests issued while idle without a new goal.
    """

    def __init__(
        self,
        planner,
        memory_store,
        critic,
        max_consecutive_failures: int = 2,
        max_idle_help_requests: int = 2,
        explore_radius: int = 16,
        use_llm_next_action: bool = False,
        rng: Optional[random.Random] = None,
    ):
        self.planner = planner
        self.memory_store = memory_store
        self.critic = critic
        self.max_consecutive_failures = max_consecutive_failures
        self.max_idle_help_requests = max_idle_help_requests
        self.explore_radius = explore_radius
        self.use_llm_next_action = use_llm_next_action
        self.rng = rng or random.Random()
        self.last_failed_action: Optional[str] = None
        self.consecutive_failures = 0
        self.idle_help_requests = 0

    async def __call__(self, state) -> Dict[str, Any]:
        try:
            return await self._decide(state)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "think_failed", goal=state.current_goal, stage="think", details={"error": str(exc)})
            return {"last_action": help_request(f"I hit an internal error while thinking ({exc}). What should I do?")}

    async def _decide(self, state) -> Dict[str, Any]:
        if state.is_idle:
            return self._idle(state)
        self.idle_help_requests = 0

        if self.critic.goal_achieved(state):
            log_json("INFO", "think_goal_achieved", goal=state.current_goal)
            await self.memory_store.record_completed_goal(state.current_goal)
            self._reset_failures()
            return {
                "current_goal": IDLE_GOAL,
                "current_plan": None,
                "last_action": help_request(GOAL_ACHIEVED_QUESTION),
            }

        survival = self.critic.survival_action(state)
        if survival and state.plan_head != survival:
            log_json("INFO", "think_survival_action", goal=state.current_goal, details={"action": survival})
            return {"current_plan": [survival] + list(state.current_plan or ()), "last_action": survival}

        needs_replan = self._track_failure(state)
        if not state.current_plan:
            needs_replan = True

        if needs_replan:
            return await self._replan(state)

        if self.use_llm_next_action:
            action = await self.planner.decide_next_action(state)
        else:
            action = state.plan_head
        return {"last_action": action}

    def _idle(self, state) -> Dict[str, Any]:
        if (state.last_action_result or "").startswith(NEW_GOAL_PREFIX):
            self.idle_help_requests = 0

        if self.idle_help_requests >= self.max_idle_help_requests:
            self.idle_help_requests = 0
            p = state.surroundings.position
            x = round(p.x + self.rng.uniform(-self.explore_radius, self.explore_radius))
            z = round(p.z + self.rng.uniform(-self.explore_radius, self.explore_radius))
            plan = [f"moveToPosition {x} {round(p.y)} {z}", "lookAround"]
            log_json("INFO", "think_idle_explore", details={"plan": plan})
            return {"current_plan": plan, "last_action": plan[0]}

        self.idle_help_requests += 1
        action = help_request(IDLE_QUESTION)
        return {"current_plan": [action], "last_action": action}

    def _track_failure(self, state) -> bool:
        """Update failure counters; True when the same action failed too often."""
        action, result = state.last_action, state.last_action_result
        if not action or not result:
            return False
        if not is_failure(result):
            self._reset_failures()
            return False
        if action == self.last_failed_action:
            self.consecutive_failures += 1
            if self.consecutive_failures >= self.max_consecutive_failures:
                log_json("WARN", "think_failure_loop", goal=state.current_goal, details={
                    "action": action, "failures": self.consecutive_failures,
                })
                self._reset_failures()
                return True
            return False
        self.last_failed_action = action
        self.consecutive_failures = 1
        return False

    def _reset_failures(self) -> None:
        self.last_failed_action = None
        self.consecutive_failures = 0

    async def _replan(self, state) -> Dict[str, Any]:
        goal = state.current_goal
        log_json("INFO", "think_replan", goal=goal)
        try:
            plan = await self.planner.create_plan(state, goal)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "think_planner_failed", goal=goal, details={"error": str(exc)})
            plan = []
        if plan:
            return {"current_plan": plan, "last_action": plan[0]}
        return {"current_plan": None, "last_action": help_request(PLANNER_STUCK_QUESTION)}
