"""Tests for the goal mailbox, chat commands, the cycle graph and the outer loop.

Run with::

    python -m pytest tests/test_agent_loop.py -v
"""
import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from core.agent_loop import AgentLoop
from core.chat_commands import EXPLORE_GOAL, HELP_LINES, ChatCommandHandler
from core.exceptions import GraphRecursionError
from core.goal_mailbox import GoalMailbox, GoalUpdate
from core.graph import END, StateGraph
from core.orchestrator import build_agent_graph, route_after_think, should_end_after_think
from core.simulation import SimulatedWorld
from core.state import IDLE_GOAL, AgentState
from memory.store import MemoryStore


def _store():
    return MemoryStore(Path(tempfile.mkdtemp()) / "memory.json")


def _stages(**overrides):
    """Stub stages that record their calls; think always moves on to validate."""
    calls = []

    def stage(name, update=None):
        async def run(state):
            calls.append(name)
            return dict(update or {})
        return run

    stages = {name: stage(name) for name in ("observe", "think", "validate", "act", "resultAnalysis")}
    stages.update(overrides)
    return stages, calls


# ---------------------------------------------------------------------------
# GoalMailbox
# ---------------------------------------------------------------------------

class TestGoalMailbox(unittest.TestCase):

    def test_latest_post_wins_and_notes_accumulate(self):
        mailbox = GoalMailbox()
        mailbox.post(GoalUpdate(goal="first"))
        mailbox.post(GoalUpdate(goal="second"))
        mailbox.note("a", "1")
        mailbox.note("b", "2")
        self.assertTrue(mailbox.pending)

        update, notes = mailbox.take()
        self.assertEqual(update.goal, "second")
        self.assertEqual(notes, [("a", "1"), ("b", "2")])
        self.assertFalse(mailbox.pending)
        self.assertEqual(mailbox.take(), (None, []))

    def test_apply_clears_plan(self):
        state = AgentState(current_goal="old", current_plan=("lookAround",), last_action="lookAround")
        new = GoalUpdate(goal="new", result="New goal received: new").apply(state)
        self.assertEqual(new.current_goal, "new")
        self.assertIsNone(new.current_plan)
        self.assertEqual(new.last_action, "lookAround")
        self.assertEqual(new.last_action_result, "New goal received: new")

    def test_stop_goes_idle(self):
        state = AgentState(current_goal="mine", current_plan=("collectBlock stone",), last_action="collectBlock stone")
        new = GoalUpdate.stop().apply(state)
        self.assertEqual(new.current_goal, IDLE_GOAL)
        self.assertIsNone(new.current_plan)
        self.assertIsNone(new.last_action)
        self.assertEqual(new.last_action_result, "Activity stopped by user.")


# ---------------------------------------------------------------------------
# ChatCommandHandler
# ---------------------------------------------------------------------------

class TestChatCommands(unittest.TestCase):

    def setUp(self):
        self.world = SimulatedWorld.starter_world()
        self.mailbox = GoalMailbox()
        self.store = _store()
        self.state = AgentState(
            current_goal="Build a house",
            current_plan=("collectBlock oak_log 4", "craftItem oak_planks 16"),
            last_action="lookAround",
            last_action_result="Looking around: I see cow.",
            inventory={"stick": 2, "dirt": 5},
        )
        self.coder = MagicMock()
        self.handler = ChatCommandHandler(
            self.world, self.mailbox, lambda: self.state, self.store, "CraftMind", coder=self.coder
        )

    def say(self, message, username="alex"):
        asyncio.run(self.handler.handle(username, message))
        return self.world.chat_log

    def test_goal_posts_update_and_note(self):
        self.assertEqual(self.say("goal build a tower"), ["New goal set: build a tower"])
        update, notes = self.mailbox.take()
        self.assertEqual(update.goal, "build a tower")
        self.assertTrue(update.clear_plan)
        self.assertEqual(update.result, "New goal received: build a tower")
        self.assertEqual(notes, [("Player command: goal", "User alex set goal: build a tower")])

    def test_goal_without_text(self):
        self.assertEqual(self.say("goal   "), ["I'm not sure how to respond to that. Type 'help' for a list of commands I understand."])
        self.assertFalse(self.mailbox.pending)

    def test_status(self):
        self.assertEqual(self.say("status"), [
            "Goal: Build a house",
            "Plan: collectBlock oak_log 4, craftItem oak_planks 16",
            "Last action: lookAround",
            "Result: Looking around: I see cow.",
        ])

    def test_inventory_and_help(self):
        self.assertEqual(self.say("inventory"), ["Inventory: dirt: 5, stick: 2"])
        self.world.chat_log.clear()
        self.assertEqual(self.say("help"), list(HELP_LINES))

    def test_memory(self):
        asyncio.run(self.store.add_recent_action("lookAround", "Looking around"))
        lines = self.say("memory")
        self.assertEqual(lines[0], "== Recent Actions (last 5) ==")
        self.assertEqual(lines[1], "lookAround -> Looking around")
        self.assertEqual(lines[2], "== Long Term Summary ==")

    def test_stop_interrupts_coder(self):
        self.assertEqual(self.say("stop"), ["Stopping current activity"])
        update, notes = self.mailbox.take()
        self.assertEqual(update.goal, IDLE_GOAL)
        self.assertEqual(notes, [("Player command: stop", "User alex requested stop")])
        self.coder.interrupt.assert_called_once()

    def test_explore(self):
        self.say("explore")
        update, _ = self.mailbox.take()
        self.assertEqual(update.goal, EXPLORE_GOAL)

    def test_goal_question(self):
        self.assertEqual(self.say("what is your goal?"), ["My current goal is: Build a house"])
        update, notes = self.mailbox.take()
        self.assertIsNone(update)
        self.assertEqual(notes, [("Player query: goal", "User alex asked about goal")])

    def test_ignores_own_messages_and_blank_lines(self):
        self.say("status", username="CraftMind")
        self.say("   ")
        self.assertEqual(self.world.chat_log, [])

    def test_world_delivers_chat_to_handler(self):
        self.world.on_chat(self.handler.handle)
        asyncio.run(self.world.receive_chat("alex", "goal mine coal"))
        self.assertTrue(self.mailbox.pending)


# ---------------------------------------------------------------------------
# Graph and routing
# ---------------------------------------------------------------------------

class TestAgentGraph(unittest.TestCase):

    def test_idle_help_request_ends_after_think(self):
        idle_help = AgentState(current_goal=IDLE_GOAL, last_action="askForHelp What should I do?")
        self.assertTrue(should_end_after_think(idle_help))
        self.assertEqual(route_after_think(idle_help), END)

        fresh_goal = idle_help.merge({"last_action_result": "New goal received: dig"})
        self.assertFalse(should_end_after_think(fresh_goal))
        busy = idle_help.merge({"current_goal": "dig"})
        self.assertEqual(route_after_think(busy), "validate")

    def test_run_ends_without_act(self):
        think_update = {"current_goal": IDLE_GOAL, "last_action": "askForHelp Goal complete. What next?"}
        stages, calls = _stages()
        stages["think"] = _recording(calls, "think", think_update)
        graph = build_agent_graph(stages)

        final = asyncio.run(graph.invoke(AgentState(current_goal="dig")))

        self.assertEqual(calls, ["observe", "think"])
        self.assertEqual(final.current_goal, IDLE_GOAL)

    def test_cycle_order_and_recursion_limit(self):
        stages, calls = _stages()
        graph = build_agent_graph(stages)
        with self.assertRaises(GraphRecursionError):
            asyncio.run(graph.invoke(AgentState(current_goal="dig"), recursion_limit=7))
        self.assertEqual(calls, ["observe", "think", "validate", "act", "resultAnalysis", "observe", "think"])

    def test_yields_at_observe_when_input_is_pending(self):
        stages, calls = _stages()
        graph = build_agent_graph(stages)
        final = asyncio.run(graph.invoke(AgentState(current_goal="dig"), yield_when=lambda: True))
        self.assertEqual(calls, ["observe", "think", "validate", "act", "resultAnalysis"])
        self.assertEqual(final.current_goal, "dig")

    def test_missing_stage(self):
        stages, _ = _stages()
        del stages["act"]
        with self.assertRaises(ValueError):
            build_agent_graph(stages)

    def test_state_graph_validation(self):
        graph = StateGraph()
        graph.add_node("a", AsyncMock(return_value={}))
        with self.assertRaises(ValueError):
            graph.add_node("a", AsyncMock())
        with self.assertRaises(ValueError):
            graph.add_node(END, AsyncMock())
        graph.set_entry_point("a")
        with self.assertRaises(ValueError):
            graph.compile()
        graph.add_edge("a", END)
        self.assertEqual(graph.compile().next_node("a", AgentState()), END)


def _recording(calls, name, update):
    async def run(state):
        calls.append(name)
        return dict(update)
    return run


# ---------------------------------------------------------------------------
# AgentLoop
# ---------------------------------------------------------------------------

class TestAgentLoop(unittest.TestCase):

    def _loop(self, graph, state=None):
        mailbox = GoalMailbox()
        observe = AsyncMock(return_value={"inventory": {"dirt": 1}})
        loop = AgentLoop(graph, observe, mailbox, _store(), idle_poll_seconds=0,
                         error_backoff_seconds=0, recursion_limit=20, initial_state=state)
        return loop, mailbox

    def test_idle_loop_does_not_run_graph(self):
        graph = MagicMock()
        graph.invoke = AsyncMock()
        loop, _ = self._loop(graph)
        self.assertFalse(asyncio.run(loop.run_once()))
        graph.invoke.assert_not_called()

    def test_new_goal_while_idle_starts_a_run(self):
        graph = MagicMock()
        graph.invoke = AsyncMock(side_effect=lambda state, **kw: state.merge({"current_goal": IDLE_GOAL}))
        loop, mailbox = self._loop(graph, AgentState(current_plan=("lookAround",)))
        mailbox.post(GoalUpdate(goal="explore the cave", result="New goal received: explore the cave"))
        mailbox.note("Player command: goal", "User alex set goal: explore the cave")

        self.assertTrue(asyncio.run(loop.run_once()))

        invoked_state = graph.invoke.call_args[0][0]
        self.assertEqual(invoked_state.current_goal, "explore the cave")
        self.assertIsNone(invoked_state.current_plan)
        self.assertEqual(invoked_state.last_action_result, "New goal received: explore the cave")
        self.assertEqual(invoked_state.memory.recent_actions[-1].action, "Player command: goal")
        self.assertEqual(loop.runs, 1)
        self.assertEqual(loop.snapshot().current_goal, IDLE_GOAL)

    def test_graph_failure_is_recorded(self):
        stages, _ = _stages()
        loop, _ = self._loop(build_agent_graph(stages), AgentState(current_goal="dig"))

        self.assertTrue(asyncio.run(loop.run_once()))

        self.assertTrue(loop.state.last_action_result.startswith("Error during agent cycle: Recursion limit of 20"))
        self.assertEqual(loop.runs, 0)

    def test_step_limit_keeps_plan_progress(self):
        async def act(state):
            return {"current_plan": list(state.current_plan[1:]), "last_action_result": "ok"}

        stages, _ = _stages(act=act)
        plan = tuple(f"s{i}" for i in range(10))
        loop, _ = self._loop(build_agent_graph(stages), AgentState(current_goal="dig", current_plan=plan))

        asyncio.run(loop.run_once())

        # 20 steps cover four full observe/think/validate/act/resultAnalysis cycles.
        self.assertEqual(loop.state.current_plan, plan[4:])
        self.assertTrue(loop.state.last_action_result.startswith("Error during agent cycle: Recursion limit of 20"))

    def test_initialize_merges_observation(self):
        loop, _ = self._loop(MagicMock())
        asyncio.run(loop.initialize())
        self.assertEqual(dict(loop.state.inventory), {"dirt": 1})

    def test_run_forever_stops_after_max_runs_and_saves(self):
        graph = MagicMock()
        graph.invoke = AsyncMock(side_effect=lambda state, **kw: state)
        loop, _ = self._loop(graph, AgentState(current_goal="dig"))

        asyncio.run(loop.run_forever(max_runs=2))

        self.assertEqual(graph.invoke.await_count, 2)
        self.assertTrue(loop.memory_store.path.exists())


if __name__ == "__main__":
    unittest.main()
