"""Minimal cyclic state graph for the agent cycle.

Nodes are async callables ``state -> partial update``. After each node the
update is merged into the running state and the next node is chosen by a
fixed edge or a router function. A run ends when the router returns
:data:`END` or the step limit is hit.
"""
from typing import Any, Awaitable, Callable, Dict, Optional

from core.exceptions import GraphRecursionError
from core.logging_utils import log_json

END = "__end__"

Node = Callable[[Any], Awaitable[Optional[Dict[str, Any]]]]
Router = Callable[[Any], str]


class StateGraph:
    def __init__(self):
        self.nodes: Dict[str, Node] = {}
        self.edges: Dict[str, str] = {}
        self.routers: Dict[str, Router] = {}
        self.entry_point: Optional[str] = None

    def add_node(self, name: str, node: Node) -> None:
        if name == END or name in self.nodes:
            raise ValueError(f"Node name already in use: {name}")
        self.nodes[name] = node

    def add_edge(self, source: str, target: str) -> None:
        self.edges[source] = target

    def add_conditional_edges(self, source: str, router: Router) -> None:
        self.routers[source] = router

    def set_entry_point(self, name: str) -> None:
        self.entry_point = name

    def compile(self) -> "CompiledGraph":
        if self.entry_point not in self.nodes:
            raise ValueError("Entry point must be a registered node.")
        for source in list(self.edges) + list(self.routers):
            if source not in self.nodes:
                raise ValueError(f"Edge from unknown node: {source}")
        for target in self.edges.values():
            if target != END and target not in self.nodes:
                raise ValueError(f"Edge to unknown node: {target}")
        for name in self.nodes:
            if name not in self.edges and name not in self.routers:
                raise ValueError(f"Node has no outgoing edge: {name}")
        return CompiledGraph(dict(self.nodes), dict(self.edges), dict(self.routers), self.entry_point)


class CompiledGraph:
    def __init__(self, nodes, edges, routers, entry_point):
        self.nodes = nodes
        self.edges = edges
        self.routers = routers
        self.entry_point = entry_point

    def next_node(self, current: str, state) -> str:
        router = self.routers.get(current)
        if router is not None:
            return router(state)
        return self.edges[current]

    async def invoke(self, state, recursion_limit: int = 300, yield_when: Optional[Callable[[], bool]] = None):
        """Run from the entry point until END.

        ``yield_when`` is checked each time the cycle returns to the entry
        point; a true result ends the run early so pending external input
        can be applied.

        Raises:
            GraphRecursionError: If more than ``recursion_limit`` nodes run. The
                error carries the state reached so far.
        """
        current = self.entry_point
        steps = 0
        while current != END:
            if steps >= recursion_limit:
                log_json("ERROR", "graph_recursion_limit", goal=getattr(state, "current_goal", None), stage=current,
                         details={"limit": recursion_limit})
                raise GraphRecursionError(f"Recursion limit of {recursion_limit} reached without hitting END.", state=state)
            if steps and current == self.entry_point and yield_when is not None and yield_when():
                log_json("INFO", "graph_yield", goal=getattr(state, "current_goal", None), details={"steps": steps})
                break
            update = await self.nodes[current](state)
            state = state.merge(update)
            steps += 1
            current = self.next_node(current, state)
        return state
