import asyncio

from agents.actions.base import ActionBase
from core.vec3 import Vec3

LOOK_RADIUS = 20


class MoveToPositionAction(ActionBase):
    name = "moveToPosition"
    usage = "moveToPosition <x> <y> <z>"
    description = "Walk to the given coordinates."

    def __init__(self, move_delay: float = 0.5):
        self.move_delay = move_delay

    async def _execute(self, world, game_data, args, state) -> str:
        try:
            x, y, z = (float(a) for a in args[:3])
        except ValueError:
            return f"Failed to move: invalid coordinates ({', '.join(args) or 'none'})."
        target = Vec3(x, y, z)

        if not world.has_pathfinder:
            await world.chat(f"Moving to {target} [SIMULATED]")
            if self.move_delay:
                await asyncio.sleep(self.move_delay)
            return f"Moved to position {target} [SIMULATED]"

        try:
            await world.move_to(target)
        except Exception as exc:  # pylint: disable=broad-except
            return f"Failed to move to position {target}: {exc}"
        return f"Moved to position {target}"


class LookAroundAction(ActionBase):
    name = "lookAround"
    usage = "lookAround"
    description = "Look at nearby entities, notable blocks and the block underfoot."

    async def _execute(self, world, game_data, args, state) -> str:
        me = await world.get_self()
        entities = [
            e.label for e in await world.get_entities()
            if e.id != me.id and e.position.distance_to(me.position) <= LOOK_RADIUS
        ]
        below = await world.block_at(me.position.floored().offset(0, -1, 0))
        standing_on = below.name if below else "unknown"
        blocks = ", ".join(state.surroundings.nearby_blocks[:10]) or "nothing notable"
        seen = ", ".join(entities) if entities else "no entities"
        return (f"Looking around: I see {seen}. Nearby blocks: {blocks}. "
                f"Standing on {standing_on} at position {me.position}")
