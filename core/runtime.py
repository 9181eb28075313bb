"""Composition root: builds every collaborator of the agent from configuration."""
from pathlib import Path
from typing import Any, Dict, Optional

from agents.actions.registry import all_actions
from agents.coder import CoderAgent
from agents.planner import PlannerAgent
from agents.sandbox import ProcedureStager
from agents.skills.repository import SkillRepository
from core.act import ActStage
from core.agent_loop import AgentLoop
from core.chat_commands import ChatCommandHandler
from core.config_manager import config as default_config
from core.critic import Critic
from core.exceptions import ConfigurationError
from core.game_data import GameData
from core.goal_mailbox import GoalMailbox
from core.logging_utils import log_json
from core.model_adapter import ModelAdapter
from core.observe import ObserveStage
from core.orchestrator import build_agent_graph
from core.result_analysis import ResultAnalysisStage
from core.simulation import SimulatedWorld
from core.state import IDLE_GOAL, AgentState
from core.think import ThinkStage
from core.validate import ValidateStage
from memory.store import MemoryStore

WORLD_BACKENDS = ("simulation",)


def _resolve(root: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else root / path


def create_world(cfg):
    backend = cfg.get("world_backend")
    if backend == "simulation":
        return SimulatedWorld.starter_world(username=cfg.get("minecraft_username"))
    raise ConfigurationError(
        f"Unknown world_backend {backend!r}; expected one of: {', '.join(WORLD_BACKENDS)}"
    )


def create_runtime(
    project_root: Path,
    cfg=None,
    world=None,
    model=None,
    goal: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the agent without starting it.

    Args:
        project_root: Directory relative storage paths are resolved against.
        cfg: Configuration source with ``get``; the global config by default.
        world: A WorldInterface; built from ``world_backend`` when omitted.
        model: A model with ``complete``; a :class:`ModelAdapter` when omitted.
        goal: Initial goal; the agent starts idle when omitted.

    Returns:
        Dict with the ``loop`` plus every collaborator, keyed by role.
    """
    cfg = cfg or default_config
    root = Path(project_root)

    world = world or create_world(cfg)
    model = model or ModelAdapter.from_config(cfg)
    if isinstance(model, ModelAdapter) and not model.api_key:
        log_json("WARN", "craftmind_api_key_missing", details={"model": model.model_name})

    memory_store = MemoryStore(
        _resolve(root, cfg.get("memory_path")),
        action_log_path=_resolve(root, cfg.get("action_log_path")),
        max_recent_actions=cfg.get("max_recent_actions"),
        max_spatial_entries=cfg.get("max_spatial_entries"),
    )
    memory_store.load()

    skills = SkillRepository(_resolve(root, cfg.get("skills_path")))
    skills.load()

    game_data = GameData()
    stager = ProcedureStager(_resolve(root, cfg.get("generated_code_dir")))
    coder = CoderAgent(
        model,
        stager,
        world,
        max_retries=cfg.get("coder_max_retries"),
        max_statements=cfg.get("coder_max_statements"),
        temperature=cfg.get("coder_temperature"),
        chat_limit=cfg.get("chat_max_length"),
    )
    actions = all_actions(coder=coder)
    planner = PlannerAgent(model, skills, actions, temperature=cfg.get("planner_temperature"))
    critic = Critic(
        explore_goal_action_count=cfg.get("explore_goal_action_count"),
        auto_sleep=cfg.get("auto_sleep"),
    )

    observe = ObserveStage(
        world,
        memory_store,
        observe_radius=cfg.get("observe_radius"),
        spatial_radius=cfg.get("spatial_radius"),
        entity_radius=cfg.get("entity_radius"),
    )
    stages = {
        "observe": observe,
        "think": ThinkStage(
            planner,
            memory_store,
            critic,
            max_consecutive_failures=cfg.get("max_consecutive_failures"),
            max_idle_help_requests=cfg.get("max_idle_help_requests"),
            explore_radius=cfg.get("explore_radius"),
            use_llm_next_action=cfg.get("llm_next_action"),
        ),
        "validate": ValidateStage(actions),
        "act": ActStage(world, game_data, actions, skills, coder, memory_store),
        "resultAnalysis": ResultAnalysisStage(max_failure_count=cfg.get("max_failure_count")),
    }

    mailbox = GoalMailbox()
    loop = AgentLoop(
        build_agent_graph(stages),
        observe,
        mailbox,
        memory_store,
        idle_poll_seconds=cfg.get("idle_poll_seconds"),
        error_backoff_seconds=cfg.get("error_backoff_seconds"),
        recursion_limit=cfg.get("recursion_limit"),
        initial_state=AgentState(memory=memory_store.snapshot(), current_goal=goal or IDLE_GOAL),
    )
    chat = ChatCommandHandler(
        world,
        mailbox,
        loop.snapshot,
        memory_store,
        bot_username=cfg.get("minecraft_username"),
        coder=coder,
    )
    world.on_chat(chat.handle)

    return {
        "world": world,
        "model": model,
        "memory_store": memory_store,
        "skills": skills,
        "game_data": game_data,
        "coder": coder,
        "planner": planner,
        "actions": actions,
        "stages": stages,
        "mailbox": mailbox,
        "chat": chat,
        "loop": loop,
    }
