from agents.actions.base import ActionBase
from core.vec3 import Vec3

UP = Vec3(0, 1, 0)


class PlaceBlockAction(ActionBase):
    name = "placeBlock"
    usage = "placeBlock <block_type> [x y z]"
    description = "Place a block from inventory at the coordinates, or right beside you when they are omitted."

    async def _execute(self, world, game_data, args, state) -> str:
        if not args:
            return "Cannot place block: no block type specified."
        block_type = args[0]
        if int(state.inventory.get(block_type, 0)) <= 0:
            return f"Cannot place {block_type}: Not found in inventory according to state."

        if len(args) >= 4:
            try:
                target = Vec3(*(float(a) for a in args[1:4])).floored()
            except ValueError:
                return f"Cannot place {block_type}: invalid coordinates ({', '.join(args[1:4])})."
        else:
            me = await world.get_self()
            target = me.position.floored().offset(1, 0, 0)

        if not world.has_pathfinder:
            await world.chat(f"Placing {block_type} at {target} [SIMULATED]")
            return f"Placed {block_type} at {target} [SIMULATED]"

        stack = next((s for s in await world.get_inventory() if s.name == block_type), None)
        if stack is None:
            return f"Cannot place {block_type}: Not found in inventory."
        reference = await world.block_at(target.offset(0, -1, 0))
        if reference is None or reference.name == "air":
            return f"Cannot place {block_type}: No solid reference block found below target position {target}."

        try:
            await world.move_to(target, reach=3)
            await world.equip(stack, "hand")
            await world.place_block(reference, UP)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to place {block_type}: {exc}"
        return f"Placed {block_type} at {target}"
