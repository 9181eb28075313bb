import asyncio

from agents.actions.base import ActionBase, parse_count
from core.logging_utils import log_json

SEARCH_DISTANCE = 32


class CollectBlockAction(ActionBase):
    name = "collectBlock"
    usage = "collectBlock <block_type> [count]"
    description = "Find, walk to and mine blocks of a type until the inventory holds count of them (wood/log means any log)."

    def __init__(self, dig_delay: float = 0.3):
        self.dig_delay = dig_delay

    async def _execute(self, world, game_data, args, state) -> str:
        if not args:
            return "Failed to collect: no block type specified."
        block_type = args[0]
        count = parse_count(args, 1)
        actual = game_data.resolve_block_alias(block_type)

        have = int(state.inventory.get(actual, 0))
        if have >= count:
            return f"Already have enough {actual} ({have}/{count}) according to current state."

        if not world.has_pathfinder:
            await world.chat(f"Collecting {count} {block_type} [SIMULATED]")
            return f"Collected {count} {block_type} [SIMULATED]"

        if not game_data.has_block(actual):
            return f"Failed to collect: block type '{actual}' (from '{block_type}') is not known."

        needed = count - have
        collected = 0
        try:
            while collected < needed:
                block = await world.find_block(lambda b: b.name == actual, SEARCH_DISTANCE)
                if block is None:
                    if collected:
                        return f"Collected {collected} {actual}, then failed to find more: not found within {SEARCH_DISTANCE} blocks."
                    return f"Failed to collect {actual}: not found within {SEARCH_DISTANCE} blocks."

                await world.move_to(block.position, reach=1)
                tool = await world.best_harvest_tool(block)
                if game_data.requires_pickaxe(actual) and (tool is None or not tool.name.endswith("_pickaxe")):
                    return (f"Failed to collect {actual}: Need a suitable tool (pickaxe) to collect this block, "
                            f"but none found in inventory.")
                if tool is not None:
                    await world.equip(tool, "hand")

                try:
                    await world.dig(block)
                except Exception as exc:  # pylint: disable=broad-except
                    log_json("WARN", "collect_dig_failed", details={"block": actual, "error": str(exc)})
                    return f"Failed to dig {actual}: {exc} (collected {collected} this run)"
                collected += 1
                if self.dig_delay:
                    await asyncio.sleep(self.dig_delay)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed during collect {block_type}: {exc} (collected {collected} this run)"

        return f"Collected {collected} {actual}."
