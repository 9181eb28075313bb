from typing import Any, Dict, Iterable

from core.action_grammar import clean_action, help_request, parse_action
from core.logging_utils import log_json

SKILL_COMMAND = "executeSkill"


class ValidateStage:
    """Cleans the chosen action and replaces unknown commands with a help request."""

    def __init__(self, action_names: Iterable[str]):
        self.known = frozenset(action_names) | {SKILL_COMMAND}

    async def __call__(self, state) -> Dict[str, Any]:
        try:
            return self._validate(state.last_action)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "validate_failed", goal=state.current_goal, stage="validate", details={"error": str(exc)})
            return {
                "last_action": help_request("I could not validate my next action. What should I do?"),
                "last_action_result": f"Validation error: {exc}",
            }

    def _validate(self, action) -> Dict[str, Any]:
        if not action:
            return {
                "last_action": help_request("I don't know what to do next. What should I do?"),
                "last_action_result": "No action to validate",
            }
        cleaned = clean_action(action)
        name, _ = parse_action(cleaned)
        if name not in self.known:
            log_json("WARN", "validate_unknown_action", details={"action": action})
            return {
                "last_action": help_request(f'I tried an unknown action "{name}". What should I do instead?'),
                "last_action_result": f"Unknown action: {name}. Please try a different approach.",
            }
        return {"last_action": cleaned}
