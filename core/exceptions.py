class CraftMindError(Exception):
    """Base class for all exceptions in CraftMind."""
    pass

class ConfigurationError(CraftMindError):
    """Raised when there is a configuration-related error."""
    pass

class ModelAdapterError(CraftMindError):
    """Raised when an error occurs in Model Adapter operations."""
    pass

class WorldInterfaceError(CraftMindError):
    """Raised when the game world rejects or cannot perform a request."""
    pass

class LoopError(CraftMindError):
    """Raised when an error occurs in the agent loop."""
    pass

class GraphRecursionError(LoopError):
    """Raised when a graph run exceeds its step limit.

    ``state`` holds the state merged from every node that ran before the limit.
    """

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.state = state

class SandboxError(CraftMindError):
    """Base class for generated-code sandbox errors."""
    pass

class StagingError(SandboxError):
    """Raised when generated code cannot be staged into a callable procedure."""
    pass

class SandboxUnavailableError(SandboxError):
    """Raised when a restricted evaluation context cannot be constructed."""
    pass
