import time
from typing import Any, Callable, Dict, List

from core.logging_utils import log_json
from core.memory_types import SpatialObservation
from core.state import Surroundings
from core.world import is_daytime


class ObserveStage:
    """
    Refreshes inventory and surroundings from the live world.

    One cube scan around the agent serves both the nearby-block list
    (``observe_radius``) and spatial memory (``spatial_radius``). Observe
    never touches goal, plan or action; if the world fails it keeps the
    previous perception.
    """

    def __init__(
        self,
        world,
        memory_store,
        observe_radius: int = 5,
        spatial_radius: int = 5,
        entity_radius: float = 10,
        clock: Callable[[], float] = time.time,
    ):
        self.world = world
        self.memory_store = memory_store
        self.observe_radius = observe_radius
        self.spatial_radius = spatial_radius
        self.entity_radius = entity_radius
        self._clock = clock

    async def __call__(self, state) -> Dict[str, Any]:
        try:
            inventory = await self._inventory()
            surroundings, observations = await self._surroundings()
        except Exception as exc:  # pylint: disable=broad-except
            log_json("ERROR", "observe_failed", goal=state.current_goal, stage="observe", details={"error": str(exc)})
            return {"inventory": state.inventory, "surroundings": state.surroundings}

        if state.inventory and dict(state.inventory) != inventory:
            changed = {
                name: inventory.get(name, 0)
                for name in set(state.inventory) | set(inventory)
                if state.inventory.get(name, 0) != inventory.get(name, 0)
            }
            log_json("INFO", "inventory_changed", details={"changed": changed})

        await self.memory_store.update_spatial_memory(observations)
        return {"inventory": inventory, "surroundings": surroundings}

    async def _inventory(self) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for stack in await self.world.get_inventory():
            totals[stack.name] = totals.get(stack.name, 0) + stack.count
        return totals

    async def _surroundings(self):
        me = await self.world.get_self()
        vitals = await self.world.get_vitals()
        position = me.position
        center = position.floored()

        entities = [
            e.label for e in await self.world.get_entities()
            if e.id != me.id and e.position.distance_to(position) <= self.entity_radius
        ]

        nearby: List[str] = []
        observations: Dict[str, SpatialObservation] = {}
        now = self._clock()
        radius = max(self.observe_radius, self.spatial_radius)
        for dx in range(-radius, radius + 1):
            for dy in range(-radius, radius + 1):
                for dz in range(-radius, radius + 1):
                    block = await self.world.block_at(center.offset(dx, dy, dz))
                    if block is None or block.name == "air":
                        continue
                    if max(abs(dx), abs(dy), abs(dz)) <= self.spatial_radius:
                        observations[block.position.key()] = SpatialObservation(block.name, now)
                    if max(abs(dx), abs(dy), abs(dz)) <= self.observe_radius:
                        nearby.append(block.name)

        time_of_day = await self.world.get_time_of_day()
        surroundings = Surroundings(
            nearby_blocks=tuple(dict.fromkeys(nearby)),
            nearby_entities=tuple(entities),
            position=position,
            health=vitals.health,
            food=vitals.food,
            time_of_day=time_of_day,
            is_day=is_daytime(time_of_day),
            biome=await self.world.get_biome(position),
            is_sleeping=vitals.is_sleeping,
        )
        return surroundings, observations
