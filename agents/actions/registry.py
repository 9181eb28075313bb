"""Registry of built-in actions."""
from __future__ import annotations
from typing import Dict

from agents.actions.base import ActionBase


def all_actions(coder=None, move_delay: float = 0.5, dig_delay: float = 0.3) -> Dict[str, ActionBase]:
    """
    Return a dict mapping action name -> action instance.

    Args:
        coder: CoderAgent used by ``generateAndExecuteCode``.
        move_delay: Seconds a simulated move takes.
        dig_delay: Pause between consecutive digs.
    """
    from agents.actions.gathering import CollectBlockAction
    from agents.actions.movement import LookAroundAction, MoveToPositionAction
    from agents.actions.crafting import CraftItemAction
    from agents.actions.combat import AttackEntityAction
    from agents.actions.building import PlaceBlockAction
    from agents.actions.rest import SleepAction, WakeUpAction
    from agents.actions.inventory import DropItemAction
    from agents.actions.communication import AskForHelpAction
    from agents.actions.codegen import GenerateAndExecuteCodeAction

    actions = [
        CollectBlockAction(dig_delay=dig_delay),
        MoveToPositionAction(move_delay=move_delay),
        LookAroundAction(),
        CraftItemAction(),
        AttackEntityAction(),
        PlaceBlockAction(),
        SleepAction(),
        WakeUpAction(),
        DropItemAction(),
        AskForHelpAction(),
        GenerateAndExecuteCodeAction(coder),
    ]
    return {action.name: action for action in actions}
