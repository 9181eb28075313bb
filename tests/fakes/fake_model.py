from core.exceptions import ModelAdapterError


class ScriptedModel:
    """Language model stand-in that replays canned responses in order.

    An item that is an exception instance is raised instead of returned.
    Once the script runs out the last response repeats.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def complete(self, messages, temperature=None):
        self.calls.append([dict(m) for m in messages])
        if not self.responses:
            raise ModelAdapterError("no scripted response")
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item
