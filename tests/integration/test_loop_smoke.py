import asyncio
from pathlib import Path

from core.config_manager import ConfigManager
from core.runtime import create_runtime
from core.simulation import SimulatedWorld
from core.state import IDLE_GOAL
from tests.fakes.fake_model import ScriptedModel

FAST = {"idle_poll_seconds": 0, "error_backoff_seconds": 0}


def _runtime(tmp_path: Path, goal=None):
    cfg = ConfigManager(tmp_path / "craftmind.config.json", overrides=dict(FAST))
    world = SimulatedWorld.starter_world(pathfinder=True)
    model = ScriptedModel("Plan:\n1. collectBlock oak_log 2")
    return create_runtime(tmp_path, cfg=cfg, world=world, model=model, goal=goal), world, model


def test_goal_run_collects_and_completes(tmp_path: Path):
    runtime, world, model = _runtime(tmp_path, goal="collect 2 oak_log")
    loop = runtime["loop"]

    async def scenario():
        await world.connect()
        await loop.initialize()
        return await loop.run_forever(max_runs=1)

    final = asyncio.run(scenario())

    assert world.inventory == {"oak_log": 2}
    assert final.current_goal == IDLE_GOAL
    assert len(model.calls) == 1
    memory = runtime["memory_store"].memory
    assert [g.goal for g in memory.knowledge_base.completed_goals] == ["collect 2 oak_log"]
    assert memory.recent_actions[-1].action == "collectBlock oak_log 2"
    assert (tmp_path / "agent_memory.json").exists()
    assert (tmp_path / "generated_code").exists() is False


def test_chat_goal_reaches_idle_agent(tmp_path: Path):
    runtime, world, _ = _runtime(tmp_path)
    loop = runtime["loop"]

    async def scenario():
        await loop.initialize()
        assert await loop.run_once() is False
        await world.receive_chat("alex", "goal collect 2 oak_log")
        return await loop.run_once()

    assert asyncio.run(scenario()) is True
    assert world.chat_log[0] == "New goal set: collect 2 oak_log"
    assert world.inventory == {"oak_log": 2}
    actions = [r.action for r in runtime["memory_store"].memory.recent_actions]
    assert actions[0] == "Player command: goal"
    assert "collectBlock oak_log 2" in actions
