"""
In-memory world backend.

By default it reports no pathfinder, so actions that need to walk
(collecting, placing, moving) report simulated results instead of touching
the world. Everything else (inventory, crafting, beds, chat) behaves like a
small, deterministic game world. With ``pathfinder=True`` movement teleports
and the walking actions run for real.
"""
from __future__ import annotations

import math
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from core.exceptions import WorldInterfaceError
from core.logging_utils import log_json
from core.vec3 import Vec3
from core.world import (
    Block,
    ChatHandler,
    Entity,
    ItemStack,
    Recipe,
    Vitals,
    WorldInterface,
    is_night,
)

Position = Tuple[int, int, int]

_PLANK_WOODS = ("oak", "spruce", "birch")

DEFAULT_RECIPES: Tuple[Recipe, ...] = tuple(
    Recipe(f"{wood}_planks", 4, {f"{wood}_log": 1}) for wood in _PLANK_WOODS
) + (
    Recipe("stick", 4, {"oak_planks": 2}),
    Recipe("crafting_table", 1, {"oak_planks": 4}),
    Recipe("torch", 4, {"coal": 1, "stick": 1}),
    Recipe("wooden_pickaxe", 1, {"oak_planks": 3, "stick": 2}, requires_table=True),
    Recipe("wooden_axe", 1, {"oak_planks": 3, "stick": 2}, requires_table=True),
    Recipe("wooden_sword", 1, {"oak_planks": 2, "stick": 1}, requires_table=True),
    Recipe("stone_pickaxe", 1, {"cobblestone": 3, "stick": 2}, requires_table=True),
    Recipe("furnace", 1, {"cobblestone": 8}, requires_table=True),
    Recipe("bread", 1, {"wheat": 3}, requires_table=True),
)

# Item dropped when a block is mined; None drops nothing.
_DROPS: Dict[str, Optional[str]] = {
    "stone": "cobblestone",
    "grass_block": "dirt",
    "coal_ore": "coal",
    "iron_ore": "raw_iron",
    "oak_leaves": None,
    "spruce_leaves": None,
    "birch_leaves": None,
    "tall_grass": None,
}


def _key(position: Vec3) -> Position:
    p = position.floored()
    return (math.floor(p.x), math.floor(p.y), math.floor(p.z))


class SimulatedWorld(WorldInterface):
    SELF_ID = 0

    def __init__(
        self,
        position: Vec3 = Vec3(0.5, 64, 0.5),
        blocks: Optional[Dict[Position, str]] = None,
        inventory: Optional[Dict[str, int]] = None,
        entities: Iterable[Entity] = (),
        time_of_day: int = 1000,
        biome: str = "plains",
        recipes: Iterable[Recipe] = DEFAULT_RECIPES,
        username: str = "CraftMind",
        health: float = 20.0,
        food: float = 20.0,
        pathfinder: bool = False,
    ):
        self.position = position
        self.blocks: Dict[Position, str] = dict(blocks or {})
        self.inventory: Dict[str, int] = dict(inventory or {})
        self.entities: List[Entity] = list(entities)
        self.time_of_day = time_of_day
        self.biome = biome
        self.recipes = list(recipes)
        self.username = username
        self.health = health
        self.food = food
        self.pathfinder = pathfinder
        self.is_sleeping = False
        self.connected = False
        self.held: Optional[str] = None
        self.chat_log: List[str] = []
        self._chat_handlers: List[ChatHandler] = []

    @classmethod
    def starter_world(cls, **kwargs) -> "SimulatedWorld":
        """A small plain with two oak trees, some coal, a bed and two animals."""
        blocks: Dict[Position, str] = {}
        for x in range(-10, 11):
            for z in range(-10, 11):
                blocks[(x, 63, z)] = "grass_block"
                blocks[(x, 62, z)] = "dirt"
                blocks[(x, 61, z)] = "stone"
        for tx, tz, height in ((4, 3, 4), (-6, -2, 5)):
            for y in range(64, 64 + height):
                blocks[(tx, y, tz)] = "oak_log"
            for dx in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    if dx or dz:
                        blocks[(tx + dx, 64 + height - 1, tz + dz)] = "oak_leaves"
            blocks[(tx, 64 + height, tz)] = "oak_leaves"
        blocks[(2, 61, -3)] = "coal_ore"
        blocks[(3, 61, -3)] = "coal_ore"
        blocks[(-3, 64, 4)] = "red_bed"
        entities = [
            Entity(id=1, name="cow", position=Vec3(5.5, 64, -4.5), kind="animal"),
            Entity(id=2, name="sheep", position=Vec3(-6.5, 64, 6.5), kind="animal"),
        ]
        kwargs.setdefault("blocks", blocks)
        kwargs.setdefault("entities", entities)
        return cls(**kwargs)

    @property
    def has_pathfinder(self) -> bool:
        return self.pathfinder

    # ------------------------------------------------------------------
    # Connection and chat
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        self.connected = True
        log_json("INFO", "sim_world_connected", details={"username": self.username})

    async def disconnect(self) -> None:
        self.connected = False

    def on_chat(self, handler: ChatHandler) -> None:
        self._chat_handlers.append(handler)

    async def receive_chat(self, username: str, message: str) -> None:
        """Deliver a chat line from another player to every registered handler."""
        for handler in list(self._chat_handlers):
            await handler(username, message)

    async def chat(self, text: str) -> None:
        self.chat_log.append(text)
        log_json("INFO", "sim_chat", details={"message": text})

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_self(self) -> Entity:
        return Entity(
            id=self.SELF_ID,
            name="player",
            position=self.position,
            kind="player",
            username=self.username,
        )

    async def get_vitals(self) -> Vitals:
        return Vitals(health=self.health, food=self.food, is_sleeping=self.is_sleeping)

    async def get_entities(self) -> List[Entity]:
        return [await self.get_self()] + list(self.entities)

    async def get_inventory(self) -> List[ItemStack]:
        return [ItemStack(name, count) for name, count in self.inventory.items() if count > 0]

    async def find_block(self, predicate: Callable[[Block], bool], max_distance: float) -> Optional[Block]:
        best: Optional[Block] = None
        best_distance = math.inf
        for (x, y, z), name in self.blocks.items():
            position = Vec3(x, y, z)
            distance = position.distance_to(self.position)
            if distance > max_distance or distance >= best_distance:
                continue
            block = Block(name, position)
            if predicate(block):
                best, best_distance = block, distance
        return best

    async def block_at(self, position: Vec3) -> Optional[Block]:
        key = _key(position)
        return Block(self.blocks.get(key, "air"), Vec3(*key))

    async def get_time_of_day(self) -> int:
        return self.time_of_day

    async def get_biome(self, position: Vec3) -> str:
        return self.biome

    async def recipes_for(self, item: str, crafting_table: bool) -> List[Recipe]:
        return [r for r in self.recipes if r.result == item and (crafting_table or not r.requires_table)]

    async def best_harvest_tool(self, block: Block) -> Optional[ItemStack]:
        if block.name.endswith("_log"):
            suffix = "_axe"
        elif block.name in ("stone", "coal_ore", "iron_ore", "cobblestone"):
            suffix = "_pickaxe"
        else:
            return None
        for tier in ("iron", "stone", "wooden"):
            name = f"{tier}{suffix}"
            if self.inventory.get(name):
                return ItemStack(name, self.inventory[name])
        return None

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def move_to(self, goal: Vec3, reach: float = 0.0) -> None:
        self.position = goal

    async def dig(self, block: Block) -> None:
        key = _key(block.position)
        if key not in self.blocks:
            raise WorldInterfaceError(f"No block to dig at {block.position}")
        name = self.blocks.pop(key)
        drop = _DROPS.get(name, name)
        if drop:
            self._add(drop, 1)

    async def equip(self, item: ItemStack, slot: str = "hand") -> None:
        if not self.inventory.get(item.name):
            raise WorldInterfaceError(f"Cannot equip {item.name}: not in inventory")
        self.held = item.name

    async def place_block(self, reference: Block, face: Vec3) -> None:
        if not self.held or not self.inventory.get(self.held):
            raise WorldInterfaceError("Nothing in hand to place")
        target = _key(reference.position.plus(face))
        if target in self.blocks:
            raise WorldInterfaceError(f"Position {Vec3(*target)} is occupied")
        self.blocks[target] = self.held
        self._add(self.held, -1)

    async def attack(self, entity: Entity) -> None:
        if entity not in self.entities:
            raise WorldInterfaceError(f"{entity.label} is no longer here")
        self.entities.remove(entity)

    async def sleep(self, bed: Block) -> None:
        if not is_night(self.time_of_day):
            raise WorldInterfaceError("It's not possible to sleep now: not night")
        self.is_sleeping = True

    async def wake(self) -> None:
        if not self.is_sleeping:
            raise WorldInterfaceError("Not sleeping")
        self.is_sleeping = False

    async def toss(self, item: ItemStack, count: int) -> None:
        if self.inventory.get(item.name, 0) < count:
            raise WorldInterfaceError(f"Not enough {item.name} to toss")
        self._add(item.name, -count)

    async def craft(self, recipe: Recipe, count: int, table: Optional[Block] = None) -> None:
        if recipe.requires_table and table is None:
            raise WorldInterfaceError(f"{recipe.result} requires a crafting table")
        for ingredient, per_craft in recipe.ingredients.items():
            if self.inventory.get(ingredient, 0) < per_craft * count:
                raise WorldInterfaceError(f"missing {ingredient}")
        for ingredient, per_craft in recipe.ingredients.items():
            self._add(ingredient, -per_craft * count)
        self._add(recipe.result, recipe.result_count * count)

    def advance_time(self, ticks: int) -> None:
        self.time_of_day = (self.time_of_day + ticks) % 24000

    def _add(self, name: str, delta: int) -> None:
        remaining = self.inventory.get(name, 0) + delta
        if remaining > 0:
            self.inventory[name] = remaining
        else:
            self.inventory.pop(name, None)
            if self.held == name:
                self.held = None
