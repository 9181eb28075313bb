from typing import Any, Dict, Mapping

from core.action_grammar import clean_action, help_request, parse_action
from core.logging_utils import log_json
from core.outcomes import is_failure
from core.validate import SKILL_COMMAND


class ActStage:
    """
    Executes the validated action and records the outcome.

    Built-in actions run through their ``execute`` contract, ``executeSkill``
    runs a stored procedure through the coder. The plan head is popped only
    when the action succeeded and is the head.
    """

    def __init__(self, world, game_data, actions: Mapping[str, Any], skills, coder, memory_store):
        self.world = world
        self.game_data = game_data
        self.actions = actions
        self.skills = skills
        self.coder = coder
        self.memory_store = memory_store

    async def __call__(self, state) -> Dict[str, Any]:
        try:
            return await self._act(state)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "act_failed", goal=state.current_goal, stage="act", details={
                "action": state.last_action, "error": str(exc),
            })
            return {
                "last_action": help_request(f"I hit an internal error while acting ({exc}). What should I do?"),
                "last_action_result": f"Internal error during action execution: {exc}",
            }

    async def _act(self, state) -> Dict[str, Any]:
        action = state.last_action or ""
        name, args = parse_action(action)

        if name in self.actions:
            result = await self.actions[name].execute(self.world, self.game_data, args, state)
        elif name == SKILL_COMMAND:
            result = await self._run_skill(args)
        else:
            result = f"Unknown action: {name}"

        log_json("INFO", "act_executed", goal=state.current_goal, details={"action": action, "result": result})
        await self.memory_store.add_recent_action(action, result)

        plan = list(state.current_plan or ())
        if not is_failure(result) and plan:
            if clean_action(plan[0]) == clean_action(action):
                plan.pop(0)
            else:
                log_json("WARN", "act_plan_deviation", goal=state.current_goal, details={
                    "action": action, "plan_head": plan[0],
                })

        return {
            "last_action_result": result,
            "current_plan": plan,
            "memory": self.memory_store.snapshot(),
        }

    async def _run_skill(self, args) -> str:
        if not args:
            return "Error: executeSkill needs a skill name."
        skill_name, arguments = args[0], args[1:]
        skill = self.skills.get(skill_name)
        if skill is None:
            return f'Error: Skill "{skill_name}" not found in the library.'
        outcome = await self.coder.run_procedure(skill.code, skill.parameters, arguments)
        if outcome.success:
            return f'Executed skill "{skill_name}": {outcome.message}'
        return f'Skill "{skill_name}" failed: {outcome.message}'
