"""
Read-mostly view of the game world handed to generated code.

Generated procedures may observe the world and chat, nothing else: there
is no way through this object to move, dig, place, attack, equip or reach
the underlying connection. Destructive operations stay with the built-in
actions.
"""
from dataclasses import dataclass
from typing import List, Optional

from core.logging_utils import log_json
from core.sanitizer import sanitize_chat_message
from core.vec3 import Vec3
from core.world import WorldInterface, is_daytime

_MAX_SEARCH_DISTANCE = 64


@dataclass(frozen=True)
class SelfView:
    position: Vec3
    velocity: Vec3
    yaw: float
    pitch: float
    on_ground: bool


@dataclass(frozen=True)
class ItemView:
    name: str
    count: int


@dataclass(frozen=True)
class BlockView:
    name: str
    position: Vec3


@dataclass(frozen=True)
class EntityView:
    name: str
    kind: str
    position: Vec3


@dataclass(frozen=True)
class TimeView:
    time_of_day: int
    is_day: bool


class RestrictedWorld:
    __slots__ = ("_world", "_chat_limit")

    # (call signature, description) pairs shown to the code generator.
    CAPABILITIES = (
        ("await world.entity()", "Your own position, velocity, yaw, pitch and on_ground flag."),
        ("await world.chat(message)", "Send a chat message. Empty messages and messages starting with '/' are dropped; long text is truncated."),
        ("await world.inventory_items()", "List of items, each with name and count."),
        ("await world.inventory_count(name)", "Total number of the named item you carry."),
        ("await world.find_block(name, max_distance=32)", "Nearest block with that name (has name and position) or None."),
        ("await world.block_at(position)", "Block at a Vec3 position (has name and position) or None."),
        ("await world.nearby_entities(max_distance=16)", "Entities around you, each with name, kind and position."),
        ("await world.time()", "Current time_of_day in ticks and an is_day flag."),
    )

    def __init__(self, world: WorldInterface, chat_limit: int = 250):
        self._world = world
        self._chat_limit = chat_limit

    async def entity(self) -> SelfView:
        me = await self._world.get_self()
        return SelfView(
            position=me.position,
            velocity=me.velocity,
            yaw=me.yaw,
            pitch=me.pitch,
            on_ground=me.on_ground,
        )

    async def chat(self, message) -> None:
        text = sanitize_chat_message(message, self._chat_limit)
        if not text:
            log_json("WARN", "restricted_chat_dropped", details={"message": str(message)[:80]})
            return
        await self._world.chat(text)

    async def inventory_items(self) -> List[ItemView]:
        return [ItemView(stack.name, stack.count) for stack in await self._world.get_inventory()]

    async def inventory_count(self, name: str) -> int:
        return sum(stack.count for stack in await self._world.get_inventory() if stack.name == name)

    async def find_block(self, name: str, max_distance: float = 32) -> Optional[BlockView]:
        distance = min(float(max_distance), _MAX_SEARCH_DISTANCE)
        block = await self._world.find_block(lambda b: b.name == name, distance)
        return BlockView(block.name, block.position) if block else None

    async def block_at(self, position: Vec3) -> Optional[BlockView]:
        block = await self._world.block_at(position)
        return BlockView(block.name, block.position) if block else None

    async def nearby_entities(self, max_distance: float = 16) -> List[EntityView]:
        me = await self._world.get_self()
        distance = min(float(max_distance), _MAX_SEARCH_DISTANCE)
        return [
            EntityView(entity.label, entity.kind, entity.position)
            for entity in await self._world.get_entities()
            if entity.id != me.id and entity.position.distance_to(me.position) <= distance
        ]

    async def time(self) -> TimeView:
        ticks = await self._world.get_time_of_day()
        return TimeView(ticks, is_daytime(ticks))
