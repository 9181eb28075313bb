"""Base class for all built-in actions."""
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import List, Sequence

from core.logging_utils import log_json


class ActionBase(ABC):
    """
    Abstract base for built-in actions.

    Subclasses set `name`, `usage` and `description` and implement `_execute()`.
    `execute()` converts any exception into a failure string.
    """

    name: str = "base_action"
    usage: str = "base_action"
    description: str = ""

    async def execute(self, world, game_data, args: Sequence[str], state) -> str:
        """Run the action. Always returns result text."""
        try:
            return await self._execute(world, game_data, list(args), state)
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", f"{self.name}_failed", details={"args": list(args), "error": str(exc)})
            return f"Failed to {self.name}: {exc}"

    @abstractmethod
    async def _execute(self, world, game_data, args: List[str], state) -> str:
        """Override in subclass. Called by execute() with exception guard."""


def parse_count(args: Sequence[str], index: int, default: int = 1) -> int:
    """Positive integer argument at *index*, or *default* when absent or invalid."""
    if len(args) <= index:
        return default
    try:
        value = int(float(args[index]))
    except ValueError:
        return default
    return value if value > 0 else default
