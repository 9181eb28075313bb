"""Chat command surface: players steer the agent by typing in game chat.

Commands::

    goal <text>   set a new goal and drop the current plan
    status        show goal, plan, last action and result
    memory        show recent actions and long-term knowledge
    inventory     show the inventory as last observed
    help          list commands
    stop          stop the current activity
    explore       switch to exploration mode
"""
import re
from typing import Callable, List

from core.goal_mailbox import GoalMailbox, GoalUpdate
from core.logging_utils import log_json

EXPLORE_GOAL = "Explore the surroundings and gather information"

HELP_LINES = (
    "Available commands:",
    "- goal <text>: Set a new goal",
    "- status: Show current status",
    "- memory: Show memory contents",
    "- inventory: Show inventory",
    "- help: Show this help message",
    "- stop: Stop current activity",
    "- explore: Force exploration mode",
)

_GOAL_QUESTION_RE = re.compile(r"\b(goal|doing|task)\b", re.IGNORECASE)


class ChatCommandHandler:
    """
    Translates chat lines into mailbox posts and read-only replies.

    Goal changes never touch the agent state directly; they are posted to the
    :class:`GoalMailbox` and applied by the agent loop at its next poll.
    """

    def __init__(
        self,
        world,
        mailbox: GoalMailbox,
        state_provider: Callable,
        memory_store,
        bot_username: str,
        coder=None,
    ):
        self.world = world
        self.mailbox = mailbox
        self.state_provider = state_provider
        self.memory_store = memory_store
        self.bot_username = bot_username
        self.coder = coder

    async def handle(self, username: str, message: str) -> None:
        if username == self.bot_username:
            return
        text = (message or "").strip()
        if not text:
            return
        log_json("INFO", "chat_received", details={"username": username, "message": text})

        if text.startswith("goal "):
            await self._set_goal(username, text[len("goal "):].strip())
        elif text == "status":
            await self._say(self._status_lines())
        elif text == "memory":
            await self._say(self._memory_lines())
        elif text == "inventory":
            await self._say([self._inventory_line()])
        elif text == "help":
            await self._say(HELP_LINES)
        elif text == "stop":
            await self._stop(username)
        elif text == "explore":
            self.mailbox.post(GoalUpdate(goal=EXPLORE_GOAL, result=f"New goal received: {EXPLORE_GOAL}"))
            self.mailbox.note("Player command: explore", f"User {username} requested exploration")
            await self._say(["Switching to exploration mode"])
        elif "?" in text and _GOAL_QUESTION_RE.search(text):
            goal = self.state_provider().current_goal or "No specific goal set"
            self.mailbox.note("Player query: goal", f"User {username} asked about goal")
            await self._say([f"My current goal is: {goal}"])
        else:
            await self._say(["I'm not sure how to respond to that. Type 'help' for a list of commands I understand."])

    async def _set_goal(self, username: str, goal: str) -> None:
        if not goal:
            await self._say(["Usage: goal <text>"])
            return
        self.mailbox.post(GoalUpdate(goal=goal, result=f"New goal received: {goal}"))
        self.mailbox.note("Player command: goal", f"User {username} set goal: {goal}")
        log_json("INFO", "chat_goal_set", goal=goal, details={"username": username})
        await self._say([f"New goal set: {goal}"])

    async def _stop(self, username: str) -> None:
        self.mailbox.post(GoalUpdate.stop())
        self.mailbox.note("Player command: stop", f"User {username} requested stop")
        if self.coder is not None:
            self.coder.interrupt()
        await self._say(["Stopping current activity"])

    def _status_lines(self) -> List[str]:
        state = self.state_provider()
        plan = ", ".join(state.current_plan) if state.current_plan else "None"
        return [
            f"Goal: {state.current_goal or 'None'}",
            f"Plan: {plan}",
            f"Last action: {state.last_action or 'None'}",
            f"Result: {state.last_action_result or 'None'}",
        ]

    def _memory_lines(self) -> List[str]:
        recent = self.memory_store.recent_actions_summary(5)
        return (
            ["== Recent Actions (last 5) =="]
            + (recent or ["None"])
            + ["== Long Term Summary ==", self.memory_store.long_term_summary()]
        )

    def _inventory_line(self) -> str:
        inventory = self.state_provider().inventory
        items = ", ".join(f"{name}: {count}" for name, count in sorted(inventory.items()))
        return f"Inventory: {items or 'Empty'}"

    async def _say(self, lines) -> None:
        for line in lines:
            await self.world.chat(line)
