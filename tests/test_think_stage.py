"""Unit tests for ThinkStage plan/replan decisions.

Run with::

    python -m pytest tests/test_think_stage.py -v
"""
import asyncio
import random
import unittest
from unittest.mock import AsyncMock, MagicMock

from core.critic import Critic
from core.memory_types import ActionRecord, StructuredMemory
from core.state import IDLE_GOAL, AgentState, Surroundings
from core.think import GOAL_ACHIEVED_QUESTION, IDLE_QUESTION, PLANNER_STUCK_QUESTION, ThinkStage
from core.vec3 import Vec3


def _planner(plan=None):
    planner = MagicMock()
    planner.create_plan = AsyncMock(return_value=list(plan or []))
    planner.decide_next_action = AsyncMock(return_value="lookAround")
    return planner


def _memory_store():
    store = MagicMock()
    store.record_completed_goal = AsyncMock()
    return store


def _stage(planner=None, **kwargs):
    kwargs.setdefault("rng", random.Random(7))
    return ThinkStage(planner or _planner(), _memory_store(), Critic(), **kwargs)


def _think(stage, state):
    return asyncio.run(stage(state))


# ---------------------------------------------------------------------------
# Replanning
# ---------------------------------------------------------------------------

class TestThinkReplanning(unittest.TestCase):

    def test_empty_plan_triggers_planner_and_sets_first_step(self):
        planner = _planner(["collectBlock oak_log 3", "craftItem oak_planks 4"])
        stage = _stage(planner)
        update = _think(stage, AgentState(current_goal="build a hut", current_plan=()))
        planner.create_plan.assert_awaited_once()
        self.assertEqual(update["current_plan"], ["collectBlock oak_log 3", "craftItem oak_planks 4"])
        self.assertEqual(update["last_action"], "collectBlock oak_log 3")

    def test_empty_plan_with_failing_planner_still_yields_action(self):
        planner = _planner([])
        update = _think(_stage(planner), AgentState(current_goal="build a hut", current_plan=None))
        self.assertTrue(update["last_action"])
        self.assertEqual(update["last_action"], f"askForHelp {PLANNER_STUCK_QUESTION}")
        self.assertIsNone(update["current_plan"])

    def test_planner_exception_falls_back_to_help_request(self):
        planner = _planner()
        planner.create_plan = AsyncMock(side_effect=RuntimeError("model offline"))
        update = _think(_stage(planner), AgentState(current_goal="build a hut"))
        self.assertTrue(update["last_action"].startswith("askForHelp"))

    def test_existing_plan_uses_head_without_planner(self):
        planner = _planner(["unused"])
        state = AgentState(current_goal="build a hut", current_plan=("lookAround", "craftItem stick 4"))
        update = _think(_stage(planner), state)
        planner.create_plan.assert_not_awaited()
        self.assertEqual(update, {"last_action": "lookAround"})

    def test_llm_next_action_mode_asks_planner(self):
        planner = _planner()
        state = AgentState(current_goal="build a hut", current_plan=("craftItem stick 4",))
        update = _think(_stage(planner, use_llm_next_action=True), state)
        planner.decide_next_action.assert_awaited_once()
        self.assertEqual(update["last_action"], "lookAround")


# ---------------------------------------------------------------------------
# Failure loops
# ---------------------------------------------------------------------------

class TestThinkFailureLoop(unittest.TestCase):

    def _failing_state(self):
        return AgentState(
            current_goal="craft 4 stick",
            current_plan=("craftItem stick 4",),
            last_action="craftItem stick 4",
            last_action_result="Not enough oak_planks to craft 4 stick. Need 2 oak_planks (have 0).",
        )

    def test_first_failure_keeps_plan(self):
        planner = _planner(["collectBlock oak_log 1"])
        stage = _stage(planner)
        update = _think(stage, self._failing_state())
        planner.create_plan.assert_not_awaited()
        self.assertEqual(update["last_action"], "craftItem stick 4")
        self.assertEqual(stage.consecutive_failures, 1)

    def test_repeated_failure_forces_replan_and_resets_counter(self):
        planner = _planner(["collectBlock oak_log 1", "craftItem oak_planks 4"])
        stage = _stage(planner)
        _think(stage, self._failing_state())
        update = _think(stage, self._failing_state())
        planner.create_plan.assert_awaited_once()
        self.assertNotEqual(update["last_action"], "craftItem stick 4")
        self.assertEqual(stage.consecutive_failures, 0)

    def test_different_failing_action_restarts_count(self):
        stage = _stage(_planner(["lookAround"]))
        _think(stage, self._failing_state())
        other = self._failing_state().merge({
            "last_action": "collectBlock stone 1",
            "last_action_result": "Failed to collect stone: not found within 32 blocks.",
        })
        _think(stage, other)
        self.assertEqual(stage.last_failed_action, "collectBlock stone 1")
        self.assertEqual(stage.consecutive_failures, 1)

    def test_success_clears_failure_tracking(self):
        stage = _stage()
        _think(stage, self._failing_state())
        ok = self._failing_state().merge({"last_action_result": "Crafted 4 stick"})
        _think(stage, ok)
        self.assertIsNone(stage.last_failed_action)
        self.assertEqual(stage.consecutive_failures, 0)


# ---------------------------------------------------------------------------
# Idle behaviour
# ---------------------------------------------------------------------------

class TestThinkIdle(unittest.TestCase):

    def test_two_help_requests_then_exploration(self):
        stage = _stage(explore_radius=16)
        state = AgentState(surroundings=Surroundings(position=Vec3(10, 64, -5)))

        first = _think(stage, state)
        second = _think(stage, state)
        third = _think(stage, state)

        self.assertEqual(first["last_action"], f"askForHelp {IDLE_QUESTION}")
        self.assertEqual(first["current_plan"], [first["last_action"]])
        self.assertEqual(second["last_action"], f"askForHelp {IDLE_QUESTION}")
        self.assertEqual(len(third["current_plan"]), 2)
        self.assertTrue(third["current_plan"][0].startswith("moveToPosition "))
        self.assertEqual(third["current_plan"][1], "lookAround")
        _, x, y, z = third["current_plan"][0].split()
        self.assertLessEqual(abs(int(x) - 10), 16)
        self.assertEqual(int(y), 64)
        self.assertLessEqual(abs(int(z) + 5), 16)

    def test_exploration_resets_help_counter(self):
        stage = _stage()
        state = AgentState()
        for _ in range(3):
            _think(stage, state)
        self.assertEqual(stage.idle_help_requests, 0)
        self.assertTrue(_think(stage, state)["last_action"].startswith("askForHelp"))

    def test_new_goal_result_resets_help_counter(self):
        stage = _stage()
        _think(stage, AgentState())
        _think(stage, AgentState())
        fresh = AgentState(last_action_result="New goal received: mine")
        update = _think(stage, fresh)
        self.assertTrue(update["last_action"].startswith("askForHelp"))
        self.assertEqual(stage.idle_help_requests, 1)


# ---------------------------------------------------------------------------
# Critic hooks
# ---------------------------------------------------------------------------

class TestThinkCritic(unittest.TestCase):

    def test_goal_completion_goes_idle_and_records_goal(self):
        stage = _stage()
        state = AgentState(
            current_goal="collect 3 oak_log",
            current_plan=("collectBlock oak_log 3",),
            inventory={"oak_log": 3},
        )
        update = _think(stage, state)
        self.assertEqual(update["current_goal"], IDLE_GOAL)
        self.assertIsNone(update["current_plan"])
        self.assertEqual(update["last_action"], f"askForHelp {GOAL_ACHIEVED_QUESTION}")
        stage.memory_store.record_completed_goal.assert_awaited_once_with("collect 3 oak_log")

    def test_explore_goal_completes_after_enough_actions(self):
        records = [ActionRecord("Player command: explore", "User op requested exploration", 1.0)]
        records += [ActionRecord("lookAround", "Looking around", float(i)) for i in range(3)]
        state = AgentState(
            memory=StructuredMemory(recent_actions=records),
            current_goal="Explore the surroundings and gather information",
            current_plan=("lookAround",),
        )
        stage = ThinkStage(_planner(), _memory_store(), Critic(explore_goal_action_count=3))
        self.assertEqual(asyncio.run(stage(state))["current_goal"], IDLE_GOAL)

    def test_sleep_at_night_near_bed_is_prepended(self):
        state = AgentState(
            current_goal="collect 10 oak_log",
            current_plan=("collectBlock oak_log 10",),
            surroundings=Surroundings(nearby_blocks=("grass_block", "red_bed"), time_of_day=15000, is_day=False),
        )
        update = _think(_stage(), state)
        self.assertEqual(update["last_action"], "sleep")
        self.assertEqual(update["current_plan"], ["sleep", "collectBlock oak_log 10"])

    def test_internal_error_becomes_help_request(self):
        critic = MagicMock()
        critic.goal_achieved.side_effect = RuntimeError("boom")
        stage = ThinkStage(_planner(), _memory_store(), critic)
        update = asyncio.run(stage(AgentState(current_goal="mine")))
        self.assertTrue(update["last_action"].startswith("askForHelp"))
        self.assertIn("boom", update["last_action"])


if __name__ == "__main__":
    unittest.main()
