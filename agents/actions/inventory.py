from agents.actions.base import ActionBase, parse_count


class DropItemAction(ActionBase):
    name = "dropItem"
    usage = "dropItem <item_name> [count]"
    description = "Toss count of an item from inventory."

    async def _execute(self, world, game_data, args, state) -> str:
        if not args:
            return "Failed to drop: no item specified."
        item = args[0]
        count = parse_count(args, 1)
        have = int(state.inventory.get(item, 0))
        if have <= 0:
            return f"Cannot drop {item}: not found in inventory according to state."
        stack = next((s for s in await world.get_inventory() if s.name == item), None)
        if stack is None:
            return f"Cannot drop {item}: not found in inventory."
        amount = min(count, have)
        try:
            await world.toss(stack, amount)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to drop {item}: {exc}"
        return f"Dropped {amount} {item}"
