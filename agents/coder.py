import asyncio
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from agents.linter import format_violations, lint_procedure
from agents.restricted_world import RestrictedWorld
from agents.sandbox import SAFE_BUILTINS, InterruptFlag, ProcedureStager, sandbox_names
from core.exceptions import StagingError
from core.logging_utils import log_json
from core.outcomes import is_failure
from core.prompts import CODER_SYSTEM_PROMPT, format_state_summary
from core.vec3 import Vec3


@dataclass
class ExecutionResult:
    """Outcome of running one generated procedure or skill.

    Attributes:
        success: True when the procedure ran and its result carried no failure marker.
        message: Text handed back to the agent as the action result.
        interrupted: True when an external stop request aborted execution.
        output: Lines the procedure passed to ``log``.
    """
    success: bool
    message: str
    interrupted: bool = False
    output: List[str] = field(default_factory=list)


class CoderAgent:
    """
    Generates, lints, stages and runs Python procedures for tasks the
    built-in actions cannot express.

    Each attempt feeds its failure (missing code block, staging error, lint
    violations or a failing result) back to the model as corrective context.
    An interruption ends the attempt loop immediately.
    """

    MAX_RETRIES = 3
    CODE_BLOCK_RE = re.compile(r"```(?:python|py)?\n(.*?)```", re.DOTALL)

    def __init__(
        self,
        model,
        stager: ProcedureStager,
        world,
        max_retries: int = MAX_RETRIES,
        max_statements: int = 100000,
        temperature: float = 0.1,
        chat_limit: int = 250,
        retry_delay: float = 1.0,
    ):
        self.model = model
        self.stager = stager
        self.world = world
        self.max_retries = max_retries
        self.temperature = temperature
        self.chat_limit = chat_limit
        self.retry_delay = retry_delay
        self.flag = InterruptFlag(max_statements)

    def interrupt(self) -> None:
        """Ask running generated code to stop at its next checkpoint."""
        self.flag.set(InterruptFlag.REQUESTED)
        log_json("INFO", "coder_interrupt_requested")

    def _system_prompt(self, state) -> str:
        capabilities = "\n".join(f"  - `{sig}`: {desc}" for sig, desc in RestrictedWorld.CAPABILITIES)
        return CODER_SYSTEM_PROMPT.format(
            capabilities=capabilities,
            builtins=", ".join(sorted(SAFE_BUILTINS)),
            state_summary=format_state_summary(state, recent_limit=3),
        )

    def extract_code(self, response: str) -> Optional[str]:
        match = self.CODE_BLOCK_RE.search(response or "")
        return match.group(1) if match else None

    async def generate_and_execute(self, task: str, state) -> ExecutionResult:
        """Generate code for *task* and run it, retrying up to ``max_retries`` times."""
        self.flag.clear()
        messages = [
            {"role": "system", "content": self._system_prompt(state)},
            {"role": "user", "content": f"Write the Python code for the following task: {task}"},
        ]
        last_error = "No attempt was made."

        for attempt in range(1, self.max_retries + 1):
            if self.flag.reason == InterruptFlag.REQUESTED:
                return self._interrupted()
            try:
                response = await self.model.complete(messages, temperature=self.temperature)
                messages.append({"role": "assistant", "content": response})

                code = self.extract_code(response)
                if code is None:
                    last_error = "No Python code block found in the response."
                    messages.append({"role": "system", "content": "Error: No Python code block found (```python ... ```). Please provide the code."})
                    log_json("WARN", "coder_no_code_block", goal=task, details={"attempt": attempt})
                    continue

                result = await self._run(code, (), {})
                if result.interrupted or result.success:
                    if result.success:
                        log_json("INFO", "coder_task_succeeded", goal=task, details={"attempt": attempt})
                        result.message = f'Successfully executed generated code for task "{task}". Result: {result.message}'
                    return result

                last_error = result.message
                messages.append({"role": "system", "content": f"{result.message}\nPlease fix the code."})
                log_json("WARN", "coder_attempt_failed", goal=task, details={"attempt": attempt, "error": result.message[:300]})
            except Exception as exc:  # pylint: disable=broad-except
                last_error = f"An unexpected error occurred: {exc}"
                messages.append({"role": "system", "content": f"{last_error}. Please try again."})
                log_json("ERROR", "coder_attempt_error", goal=task, details={"attempt": attempt, "error": str(exc)})
                await asyncio.sleep(self.retry_delay)

        log_json("ERROR", "coder_max_retries_reached", goal=task, details={"max_retries": self.max_retries})
        return ExecutionResult(
            False,
            f'Failed to generate and execute code for task "{task}" after {self.max_retries} attempts. Last error: {last_error}',
        )

    async def run_procedure(self, code: str, parameters: Sequence[str], arguments: Sequence[str]) -> ExecutionResult:
        """Stage, lint and run a stored procedure body with positional *arguments*."""
        self.flag.clear()
        bound = dict(zip(parameters, arguments))
        return await self._run(code, tuple(parameters), bound)

    async def _run(self, code: str, parameters: Sequence[str], arguments: Dict[str, str]) -> ExecutionResult:
        if self.flag.reason != InterruptFlag.REQUESTED:
            self.flag.clear()
        try:
            staged = await self.stager.stage(code, parameters, self.flag)
        except StagingError as exc:
            return ExecutionResult(False, f"Error during code staging: {exc}")

        violations = lint_procedure(staged.lint_source, sandbox_names(parameters))
        if violations:
            return ExecutionResult(False, "Code linting errors:\n" + format_violations(violations))

        output: List[str] = []

        def log(*values) -> None:
            line = " ".join(str(v) for v in values)
            output.append(line)
            log_json("INFO", "generated_code_log", details={"message": line[:500]})

        restricted = RestrictedWorld(self.world, self.chat_limit)
        returned = await staged.main(restricted, log, Vec3, **arguments)

        if self.flag.reason == InterruptFlag.REQUESTED:
            return self._interrupted(output)
        if self.flag.reason == InterruptFlag.STATEMENT_BUDGET:
            return ExecutionResult(False, f"Execution failed: exceeded {self.flag.max_statements} statements without finishing.", output=output)

        text = "Code executed successfully." if returned is None else str(returned)
        if is_failure(text):
            message = text if text.startswith("Execution failed") else f"Execution failed: {text}"
            return ExecutionResult(False, message, output=output)
        return ExecutionResult(True, text, output=output)

    def _interrupted(self, output: Optional[List[str]] = None) -> ExecutionResult:
        log_json("INFO", "coder_interrupted")
        return ExecutionResult(False, "Execution failed: code execution was interrupted.", interrupted=True, output=output or [])
