import math
from typing import List, Optional, Tuple

from agents.actions.base import ActionBase, parse_count
from core.game_data import LOG_TYPES
from core.state import IDLE_GOAL
from core.world import Recipe

TABLE_DISTANCE = 4
_ALIASES = {"wooden_planks": "oak_planks", "planks": "oak_planks", "sticks": "stick"}


def _missing_ingredients(recipe: Recipe, crafts: int, inventory) -> List[Tuple[str, int, int]]:
    missing = []
    for ingredient, per_craft in recipe.ingredients.items():
        required = per_craft * crafts
        have = int(inventory.get(ingredient, 0))
        if have < required:
            missing.append((ingredient, required, have))
    return missing


def _not_enough_message(item: str, count: int, missing: List[Tuple[str, int, int]]) -> str:
    if len(missing) == 1:
        ingredient, required, have = missing[0]
        return f"Not enough {ingredient} to craft {count} {item}. Need {required} {ingredient} (have {have})."
    needs = ", ".join(f"{required} {ingredient} (have {have})" for ingredient, required, have in missing)
    return f"Not enough ingredients to craft {count} {item}. Need {needs}."


class CraftItemAction(ActionBase):
    name = "craftItem"
    usage = "craftItem <item_name> [count]"
    description = "Craft count of an item by hand, or at a crafting table within 4 blocks for 3x3 recipes."

    async def _execute(self, world, game_data, args, state) -> str:
        if not args:
            return "Failed to craft: no item specified."
        item = _ALIASES.get(args[0], args[0])
        count = parse_count(args, 1)

        if not game_data.has_item(item):
            return f"Failed to craft: item '{item}' not found in game data."

        if item.endswith("_planks"):
            return await self._craft_planks(world, game_data, item, count, state)

        hand_recipe = self._first(await world.recipes_for(item, False))
        if hand_recipe is not None:
            return await self._craft(world, hand_recipe, item, count, state, table=None)

        table_recipe = self._first(await world.recipes_for(item, True))
        if table_recipe is not None:
            table = await world.find_block(lambda b: b.name == "crafting_table", TABLE_DISTANCE)
            if table is None:
                return f"Cannot craft {item}. Need a crafting table nearby."
            return await self._craft(world, table_recipe, item, count, state, table=table)

        return f"No recipe found for {item} (checked hand and table)"

    @staticmethod
    def _first(recipes) -> Optional[Recipe]:
        return recipes[0] if recipes else None

    async def _craft(self, world, recipe: Recipe, item: str, count: int, state, table) -> str:
        crafts = math.ceil(count / max(recipe.result_count, 1))
        missing = _missing_ingredients(recipe, crafts, state.inventory)
        if missing:
            return _not_enough_message(item, count, missing)
        if state.current_goal == IDLE_GOAL:
            return "Action stopped by user."
        where = "crafting table" if table is not None else "hand"
        try:
            await world.craft(recipe, crafts, table)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to craft {item} ({where}): {exc}"
        made = crafts * recipe.result_count
        if table is not None:
            return f"Crafted {made} {item} using crafting table"
        return f"Crafted {made} {item}"

    async def _craft_planks(self, world, game_data, item: str, count: int, state) -> str:
        log_type = game_data.planks_source(item)
        inventory = state.inventory
        if not inventory.get(log_type):
            # Any log will do when the matching one is absent.
            for candidate in LOG_TYPES:
                if inventory.get(candidate):
                    log_type = candidate
                    item = candidate[: -len("_log")] + "_planks"
                    break

        required_logs = math.ceil(count / 4)
        have = int(inventory.get(log_type, 0))
        if have < required_logs:
            return (f"Not enough {log_type} to craft {count} {item}. "
                    f"Have {have}, need {required_logs} {log_type}.")

        recipe = self._first(await world.recipes_for(item, False))
        if recipe is None:
            return f"No recipe found for {item} (checked hand)"
        try:
            await world.craft(recipe, required_logs, None)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to craft {item}: {exc}"
        return f"Crafted {required_logs * recipe.result_count} {item} from {required_logs} {log_type}"
