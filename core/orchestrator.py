"""Wiring of the observe → think → validate → act → analyse cycle.

Typical usage::

    from core.orchestrator import build_agent_graph

    graph = build_agent_graph(stages)
    final_state = await graph.invoke(state, recursion_limit=300)
"""
from typing import Any, Mapping

from core.graph import END, CompiledGraph, StateGraph
from core.think import NEW_GOAL_PREFIX

STAGE_ORDER = ("observe", "think", "validate", "act", "resultAnalysis")


def should_end_after_think(state) -> bool:
    """True when Think asked for help while idle and no goal has just arrived."""
    action = state.last_action or ""
    result = state.last_action_result or ""
    return "askForHelp" in action and state.is_idle and not result.startswith(NEW_GOAL_PREFIX)


def route_after_think(state) -> str:
    return END if should_end_after_think(state) else "validate"


def build_agent_graph(stages: Mapping[str, Any]) -> CompiledGraph:
    """Compile the agent cycle graph.

    Args:
        stages: One async callable per name in :data:`STAGE_ORDER`.

    Raises:
        ValueError: If a stage is missing.
    """
    missing = [name for name in STAGE_ORDER if name not in stages]
    if missing:
        raise ValueError(f"Missing stages: {', '.join(missing)}")

    graph = StateGraph()
    for name in STAGE_ORDER:
        graph.add_node(name, stages[name])
    graph.set_entry_point("observe")
    graph.add_edge("observe", "think")
    graph.add_conditional_edges("think", route_after_think)
    graph.add_edge("validate", "act")
    graph.add_edge("act", "resultAnalysis")
    graph.add_edge("resultAnalysis", "observe")
    return graph.compile()
