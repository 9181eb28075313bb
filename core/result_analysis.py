import re
from typing import Any, Dict, List, Optional

from core.action_grammar import clean_action, help_request, parse_action
from core.logging_utils import log_json
from core.outcomes import classify_failure_reason, indicates_failure

_NEED_RE = re.compile(r"need (\d+) ([a-z_]+)", re.IGNORECASE)


class ResultAnalysisStage:
    """
    Patches the plan locally when the same kind of failure keeps recurring.

    Failures are counted per ``<action type>:<reason>`` key. When a key
    reaches ``max_failure_count`` the matching adaptation fires and the
    count starts again from zero. A success clears every key of that
    action type.
    """

    def __init__(self, max_failure_count: int = 3):
        self.max_failure_count = max_failure_count
        self.failure_patterns: Dict[str, int] = {}

    async def __call__(self, state) -> Dict[str, Any]:
        try:
            return self._analyse(state)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "result_analysis_failed", goal=state.current_goal, stage="resultAnalysis", details={"error": str(exc)})
            return {
                "last_action": help_request(f"I hit an internal error while analysing my last action ({exc}). What should I do?"),
            }

    def _analyse(self, state) -> Dict[str, Any]:
        action = state.last_action or ""
        result = state.last_action_result or ""
        action_type, _ = parse_action(action)

        if not indicates_failure(result):
            self._clear(action_type)
            return {}

        reason = classify_failure_reason(result)
        key = f"{action_type}:{reason}"
        count = self.failure_patterns.get(key, 0) + 1
        self.failure_patterns[key] = count
        log_json("INFO", "result_failure_pattern", goal=state.current_goal, details={"pattern": key, "count": count})

        if count < self.max_failure_count:
            return {}
        self.failure_patterns[key] = 0
        return self._adapt(state, action_type, reason)

    def _clear(self, action_type: str) -> None:
        if not action_type:
            return
        for key in [k for k in self.failure_patterns if k.startswith(f"{action_type}:")]:
            del self.failure_patterns[key]

    def _adapt(self, state, action_type: str, reason: str) -> Dict[str, Any]:
        plan: List[str] = list(state.current_plan or ())
        log_json("WARN", "result_adapting_plan", goal=state.current_goal, details={
            "action_type": action_type, "reason": reason,
        })
        if not plan:
            return self._escalate(action_type, reason)

        if reason == "markdown_error":
            cleaned = clean_action(state.last_action or "")
            return {"last_action": cleaned, "last_action_result": f"Retrying with cleaned action: {cleaned}"}

        if reason == "insufficient_resources":
            need = self._parse_need(state.last_action_result)
            if need is None:
                return self._escalate(action_type, reason)
            count, resource = need
            step = f"collectBlock {resource} {count}"
            return {
                "current_plan": [step] + plan,
                "last_action": step,
                "last_action_result": f"Adapting plan to collect needed resource: {count} {resource}",
            }

        if reason in ("not_found", "too_far"):
            return {"current_plan": ["lookAround"] + plan, "last_action": "lookAround"}

        if reason == "unknown_action":
            remaining = plan[1:]
            if not remaining:
                return self._escalate(action_type, reason)
            return {"current_plan": remaining, "last_action": remaining[0]}

        return self._escalate(action_type, reason)

    @staticmethod
    def _parse_need(result: Optional[str]):
        match = _NEED_RE.search(result or "")
        if not match:
            return None
        return int(match.group(1)), match.group(2).lower()

    @staticmethod
    def _escalate(action_type: str, reason: str) -> Dict[str, Any]:
        step = help_request(f"I'm having trouble with {action_type} ({reason}). What should I do instead?")
        return {"current_plan": [step], "last_action": step}
