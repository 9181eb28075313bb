"""Tests for ResultAnalysisStage failure-pattern adaptation.

Run with::

    python -m pytest tests/test_result_analysis.py -v
"""
import asyncio
import unittest

from core.outcomes import classify_failure_reason, indicates_failure, is_failure
from core.result_analysis import ResultAnalysisStage
from core.state import AgentState

NOT_ENOUGH = "Not enough oak_planks to craft stick. Need 2 oak_planks."


def _analyse(stage, state):
    return asyncio.run(stage(state))


class TestOutcomeClassification(unittest.TestCase):

    def test_reason_checks_run_in_order(self):
        self.assertEqual(classify_failure_reason("Failed: oak_log not found, not enough"), "not_found")
        self.assertEqual(classify_failure_reason(NOT_ENOUGH), "insufficient_resources")
        self.assertEqual(classify_failure_reason("No recipe found for x"), "no_recipe")
        self.assertEqual(classify_failure_reason("Unknown action: fly"), "unknown_action")
        self.assertEqual(classify_failure_reason("Failed: target too far"), "too_far")
        self.assertEqual(classify_failure_reason("Error near ```"), "markdown_error")
        self.assertEqual(classify_failure_reason("Failed to dig"), "unknown")

    def test_marker_sets_differ(self):
        self.assertTrue(indicates_failure("Unable to reach"))
        self.assertFalse(is_failure("Unable to reach"))
        self.assertTrue(is_failure("Cannot place dirt: Not found in inventory according to state."))
        self.assertFalse(is_failure("Collected 3 oak_log [SIMULATED]"))


class TestResultAnalysisAdaptation(unittest.TestCase):

    def _state(self, action="craftItem stick 4", result=NOT_ENOUGH, plan=("craftItem stick 4", "craftItem crafting_table")):
        return AgentState(current_goal="craft a crafting_table", current_plan=plan,
                          last_action=action, last_action_result=result)

    def test_insufficient_resources_prepends_collect_at_threshold(self):
        stage = ResultAnalysisStage(max_failure_count=3)
        self.assertEqual(_analyse(stage, self._state()), {})
        self.assertEqual(_analyse(stage, self._state()), {})
        update = _analyse(stage, self._state())
        self.assertEqual(update["current_plan"][0], "collectBlock oak_planks 2")
        self.assertEqual(update["current_plan"][1:], ["craftItem stick 4", "craftItem crafting_table"])
        self.assertEqual(update["last_action"], "collectBlock oak_planks 2")

    def test_adaptation_fires_once_per_threshold_crossing(self):
        stage = ResultAnalysisStage(max_failure_count=3)
        fired = [bool(_analyse(stage, self._state())) for _ in range(6)]
        self.assertEqual(fired, [False, False, True, False, False, True])

    def test_success_resets_patterns_for_action_type(self):
        stage = ResultAnalysisStage(max_failure_count=3)
        _analyse(stage, self._state())
        _analyse(stage, self._state())
        _analyse(stage, self._state(result="Crafted 4 stick"))
        self.assertEqual(stage.failure_patterns, {})
        self.assertEqual(_analyse(stage, self._state()), {})

    def test_success_keeps_other_action_types(self):
        stage = ResultAnalysisStage()
        _analyse(stage, self._state(action="collectBlock stone 3", result="Failed to collect stone: not found within 32 blocks."))
        _analyse(stage, self._state(result="Crafted 4 stick"))
        self.assertEqual(stage.failure_patterns, {"collectBlock:not_found": 1})

    def test_not_found_prepends_look_around(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(
            action="collectBlock stone 3",
            result="Failed to collect stone: not found within 32 blocks.",
            plan=("collectBlock stone 3",),
        ))
        self.assertEqual(update, {"current_plan": ["lookAround", "collectBlock stone 3"], "last_action": "lookAround"})

    def test_unknown_action_skips_plan_head(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(action="fly up", result="Unknown action: fly", plan=("fly up", "lookAround")))
        self.assertEqual(update, {"current_plan": ["lookAround"], "last_action": "lookAround"})

    def test_unknown_action_without_next_step_escalates(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(action="fly up", result="Unknown action: fly", plan=("fly up",)))
        self.assertEqual(len(update["current_plan"]), 1)
        self.assertTrue(update["last_action"].startswith("askForHelp I'm having trouble with fly (unknown_action)"))

    def test_markdown_error_resubmits_cleaned_action(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(action="```\nlookAround\n```", result="Error: stray ``` in action"))
        self.assertEqual(update["last_action"], "lookAround")

    def test_unparseable_need_escalates(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(result="Not enough ingredients to craft stick."))
        self.assertTrue(update["last_action"].startswith("askForHelp"))
        self.assertEqual(update["current_plan"], [update["last_action"]])

    def test_other_reason_escalates(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(action="sleep", result="Failed to sleep: It is not night time"))
        self.assertEqual(update["last_action"], "askForHelp I'm having trouble with sleep (unknown). What should I do instead?")

    def test_no_plan_escalates(self):
        stage = ResultAnalysisStage(max_failure_count=1)
        update = _analyse(stage, self._state(plan=None))
        self.assertTrue(update["last_action"].startswith("askForHelp"))


if __name__ == "__main__":
    unittest.main()
