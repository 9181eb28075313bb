from agents.actions.base import ActionBase


class GenerateAndExecuteCodeAction(ActionBase):
    name = "generateAndExecuteCode"
    usage = "generateAndExecuteCode <task description>"
    description = "Write and run a custom procedure for a task the other actions cannot express."

    def __init__(self, coder=None):
        self.coder = coder

    async def _execute(self, world, game_data, args, state) -> str:
        task = " ".join(args).strip()
        if not task:
            return "Error: No task description provided for code generation."
        if self.coder is None:
            return "Error: Code generation is not available."
        outcome = await self.coder.generate_and_execute(task, state)
        return outcome.message
