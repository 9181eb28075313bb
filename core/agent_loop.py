import asyncio
from typing import Optional

from core.exceptions import GraphRecursionError
from core.goal_mailbox import GoalMailbox
from core.logging_utils import log_json
from core.state import AgentState


class AgentLoop:
    """
    Outer loop around the compiled agent graph.

    While the goal is idle the loop only polls the mailbox. With an active
    goal it runs the graph until it ends and keeps the final state. A run
    that raises is recorded in ``last_action_result`` and retried after a
    backoff.

    Attributes:
        state: The state shared between graph runs.
        runs: Number of completed graph runs.
    """

    def __init__(
        self,
        graph,
        observe_stage,
        mailbox: GoalMailbox,
        memory_store,
        idle_poll_seconds: float = 1.0,
        error_backoff_seconds: float = 5.0,
        recursion_limit: int = 300,
        initial_state: Optional[AgentState] = None,
    ):
        self.graph = graph
        self.observe_stage = observe_stage
        self.mailbox = mailbox
        self.memory_store = memory_store
        self.idle_poll_seconds = idle_poll_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.recursion_limit = recursion_limit
        self.state = initial_state or AgentState(memory=memory_store.snapshot())
        self.runs = 0
        self._stopped = False

    def snapshot(self) -> AgentState:
        return self.state

    def stop(self) -> None:
        self._stopped = True

    async def initialize(self) -> AgentState:
        """Populate inventory and surroundings once before any goal-driven run."""
        self.state = self.state.merge(await self.observe_stage(self.state))
        log_json("INFO", "agent_loop_initialized", goal=self.state.current_goal)
        return self.state

    async def apply_mailbox(self) -> bool:
        """Apply pending chat input. Returns True when a goal update was applied."""
        update, notes = self.mailbox.take()
        for action, result in notes:
            await self.memory_store.add_recent_action(action, result)
        if notes:
            self.state = self.state.merge({"memory": self.memory_store.snapshot()})
        if update is None:
            return False
        self.state = update.apply(self.state)
        log_json("INFO", "agent_loop_goal_update", goal=self.state.current_goal)
        return True

    async def run_once(self) -> bool:
        """One outer iteration. Returns True when a graph run was attempted."""
        await self.apply_mailbox()
        if self.state.is_idle:
            await asyncio.sleep(self.idle_poll_seconds)
            return False

        goal = self.state.current_goal
        log_json("INFO", "agent_loop_run_start", goal=goal)
        try:
            self.state = await self.graph.invoke(
                self.state,
                recursion_limit=self.recursion_limit,
                yield_when=lambda: self.mailbox.pending,
            )
            self.runs += 1
            log_json("INFO", "agent_loop_run_end", goal=goal, details={
                "current_goal": self.state.current_goal,
                "last_action": self.state.last_action,
            })
        except GraphRecursionError as exc:
            log_json("ERROR", "agent_loop_run_failed", goal=goal, details={"error": str(exc)})
            # Keep the plan progress of the cycles that did run.
            if exc.state is not None:
                self.state = exc.state
            self.state = self.state.merge({"last_action_result": f"Error during agent cycle: {exc}"})
            await asyncio.sleep(self.error_backoff_seconds)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "agent_loop_run_failed", goal=goal, details={"error": str(exc)})
            self.state = self.state.merge({"last_action_result": f"Error during agent cycle: {exc}"})
            await asyncio.sleep(self.error_backoff_seconds)
        return True

    async def run_forever(self, max_runs: Optional[int] = None) -> AgentState:
        """Loop until :meth:`stop` is called or ``max_runs`` graph runs were attempted."""
        attempts = 0
        self._stopped = False
        try:
            while not self._stopped:
                if max_runs is not None and attempts >= max_runs:
                    break
                if await self.run_once():
                    attempts += 1
        finally:
            await self.memory_store.save()
            log_json("INFO", "agent_loop_finished", goal=self.state.current_goal, details={"runs": self.runs})
        return self.state
