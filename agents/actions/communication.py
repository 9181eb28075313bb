from agents.actions.base import ActionBase


class AskForHelpAction(ActionBase):
    name = "askForHelp"
    usage = "askForHelp <question>"
    description = "Ask the operator a question in chat."

    async def _execute(self, world, game_data, args, state) -> str:
        question = " ".join(args).strip() or "I need help. What should I do?"
        await world.chat(f"[Help Needed] {question}")
        return f'Asked for help: "{question}"'
