"""
Game-world boundary for the agent.

``WorldInterface`` is everything the agent may ask of a live game
connection. Every method is async and may raise; the action layer turns
those errors into descriptive result strings.

Typical usage::

    world = SimulatedWorld.starter_world()
    await world.connect()
    me = await world.get_self()
    log = await world.find_block(lambda b: b.name == "oak_log", 32)
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from core.vec3 import Vec3


@dataclass(frozen=True)
class Block:
    name: str
    position: Vec3


@dataclass(frozen=True)
class Entity:
    id: int
    name: str
    position: Vec3
    kind: str = "mob"
    username: Optional[str] = None
    display_name: Optional[str] = None
    velocity: Vec3 = Vec3()
    yaw: float = 0.0
    pitch: float = 0.0
    on_ground: bool = True

    @property
    def label(self) -> str:
        """Identifier reported in surroundings: player name or entity name."""
        return self.username or self.name


@dataclass(frozen=True)
class ItemStack:
    name: str
    count: int
    slot: Optional[int] = None


@dataclass(frozen=True)
class Recipe:
    """A crafting recipe producing ``result_count`` of ``result`` per craft.

    Attributes:
        ingredients: Item name → quantity consumed by one craft.
        requires_table: True when the recipe needs the 3x3 crafting grid.
    """
    result: str
    result_count: int
    ingredients: Dict[str, int] = field(default_factory=dict)
    requires_table: bool = False


@dataclass(frozen=True)
class Vitals:
    health: float = 20.0
    food: float = 20.0
    is_sleeping: bool = False


ChatHandler = Callable[[str, str], Awaitable[None]]


class WorldInterface(ABC):
    """Async view of one connected game client."""

    @property
    def has_pathfinder(self) -> bool:
        """False when movement cannot be planned (simulation mode)."""
        return False

    @abstractmethod
    async def connect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def disconnect(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_self(self) -> Entity:
        raise NotImplementedError

    @abstractmethod
    async def get_vitals(self) -> Vitals:
        raise NotImplementedError

    @abstractmethod
    async def get_entities(self) -> List[Entity]:
        raise NotImplementedError

    @abstractmethod
    async def get_inventory(self) -> List[ItemStack]:
        raise NotImplementedError

    @abstractmethod
    async def find_block(self, predicate: Callable[[Block], bool], max_distance: float) -> Optional[Block]:
        """Return the nearest block matching *predicate* within *max_distance*."""
        raise NotImplementedError

    @abstractmethod
    async def block_at(self, position: Vec3) -> Optional[Block]:
        raise NotImplementedError

    @abstractmethod
    async def move_to(self, goal: Vec3, reach: float = 0.0) -> None:
        """Walk until within *reach* blocks of *goal*."""
        raise NotImplementedError

    @abstractmethod
    async def dig(self, block: Block) -> None:
        raise NotImplementedError

    @abstractmethod
    async def equip(self, item: ItemStack, slot: str = "hand") -> None:
        raise NotImplementedError

    @abstractmethod
    async def place_block(self, reference: Block, face: Vec3) -> None:
        raise NotImplementedError

    @abstractmethod
    async def attack(self, entity: Entity) -> None:
        raise NotImplementedError

    @abstractmethod
    async def sleep(self, bed: Block) -> None:
        raise NotImplementedError

    @abstractmethod
    async def wake(self) -> None:
        raise NotImplementedError

    @abstractmethod
    async def toss(self, item: ItemStack, count: int) -> None:
        raise NotImplementedError

    @abstractmethod
    async def chat(self, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_time_of_day(self) -> int:
        """Raw tick count within the day, 0..23999."""
        raise NotImplementedError

    @abstractmethod
    async def get_biome(self, position: Vec3) -> str:
        raise NotImplementedError

    @abstractmethod
    async def recipes_for(self, item: str, crafting_table: bool) -> List[Recipe]:
        """Recipes for *item*; hand-craftable only unless *crafting_table*."""
        raise NotImplementedError

    @abstractmethod
    async def craft(self, recipe: Recipe, count: int, table: Optional[Block] = None) -> None:
        """Run *recipe* *count* times, at *table* when given."""
        raise NotImplementedError

    @abstractmethod
    async def best_harvest_tool(self, block: Block) -> Optional[ItemStack]:
        raise NotImplementedError

    @abstractmethod
    def on_chat(self, handler: ChatHandler) -> None:
        """Register ``handler(username, message)`` for incoming chat."""
        raise NotImplementedError


def is_daytime(time_of_day: int) -> bool:
    """Day spans ticks [0, 13000) and (23000, 24000)."""
    return 0 <= time_of_day < 13000 or time_of_day > 23000


def is_night(time_of_day: int) -> bool:
    return 13000 <= time_of_day <= 23000
