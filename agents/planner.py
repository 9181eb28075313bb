import re
from typing import List, Mapping, Optional

from core.action_grammar import strip_numbering
from core.exceptions import ModelAdapterError
from core.logging_utils import log_json
from core.prompts import (
    MINECRAFT_KNOWLEDGE,
    NEXT_ACTION_PROMPT,
    PLANNER_PROMPT,
    format_skill_descriptions,
    format_state_summary,
)

_FENCE_RE = re.compile(r"```[a-z]*")
_PLAN_PREFIX_RE = re.compile(r"^\s*plan:\s*", re.IGNORECASE)
# Listed separately in the prompt.
_SPECIAL_ACTIONS = ("generateAndExecuteCode", "askForHelp")


def parse_plan(text: str) -> List[str]:
    """Split model output into action lines.

    Code fences, a leading ``Plan:`` label and list numbering are removed;
    blank lines and ``//`` or ``#`` comment lines are dropped.
    """
    if not text:
        return []
    cleaned = _FENCE_RE.sub("", text)
    cleaned = _PLAN_PREFIX_RE.sub("", cleaned)
    steps = []
    for line in cleaned.splitlines():
        step = strip_numbering(line.strip().lstrip("-*").strip())
        if not step or step.startswith("//") or step.startswith("#"):
            continue
        steps.append(step)
    return steps


class PlannerAgent:
    """
    The PlannerAgent turns the current state and goal into an ordered list of
    action strings using the language model. Model failures and unusable
    output yield an empty plan; callers pick a safe default action.
    """
    def __init__(self, model, skills, actions: Mapping[str, object], temperature: float = 0.1):
        """
        Args:
            model: Object with an async ``complete(messages, temperature=None)``.
            skills: The SkillRepository whose skills are offered as ``executeSkill`` steps.
            actions: Built-in action registry (name → action with ``usage`` and ``description``).
        """
        self.model = model
        self.skills = skills
        self.actions = actions
        self.temperature = temperature

    def _action_descriptions(self) -> str:
        return "\n".join(
            f"- {action.usage}: {action.description}"
            for name, action in self.actions.items()
            if name not in _SPECIAL_ACTIONS
        )

    def build_prompt(self, template: str, state, goal: str) -> str:
        return template.format(
            knowledge=MINECRAFT_KNOWLEDGE,
            state_summary=format_state_summary(state),
            goal=goal,
            action_descriptions=self._action_descriptions(),
            skill_descriptions=format_skill_descriptions(self.skills.get_all()),
        )

    async def _ask(self, prompt: str, event: str, goal: str) -> Optional[str]:
        try:
            return await self.model.complete([{"role": "user", "content": prompt}], temperature=self.temperature)
        except ModelAdapterError as exc:
            log_json("ERROR", f"{event}_model_failed", goal=goal, details={"error": str(exc)})
            return None

    async def create_plan(self, state, goal: str) -> List[str]:
        response = await self._ask(self.build_prompt(PLANNER_PROMPT, state, goal), "planner", goal)
        plan = parse_plan(response or "")
        if plan:
            log_json("INFO", "plan_created", goal=goal, details={"steps": plan})
        else:
            log_json("WARN", "plan_empty", goal=goal, details={"raw": (response or "")[:200]})
        return plan

    async def decide_next_action(self, state) -> str:
        """Exactly one action line; falls back to the plan head, then ``lookAround``."""
        goal = state.current_goal or ""
        response = await self._ask(self.build_prompt(NEXT_ACTION_PROMPT, state, goal), "next_action", goal)
        lines = parse_plan(response or "")
        if lines:
            return lines[0]
        return state.plan_head or "lookAround"
