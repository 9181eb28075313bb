"""Static block and item catalog consulted by the built-in actions."""
from typing import Iterable, Optional

LOG_TYPES = (
    "oak_log", "spruce_log", "birch_log", "jungle_log",
    "acacia_log", "dark_oak_log", "mangrove_log", "cherry_log",
)

_COLORS = (
    "white", "orange", "magenta", "light_blue", "yellow", "lime", "pink", "gray",
    "light_gray", "cyan", "purple", "blue", "brown", "green", "red", "black",
)
BED_BLOCKS = tuple(f"{color}_bed" for color in _COLORS)

# Blocks that drop nothing unless mined with a pickaxe.
PICKAXE_BLOCKS = (
    "stone", "cobblestone", "coal_ore", "iron_ore", "gold_ore", "diamond_ore",
    "redstone_ore", "lapis_ore", "copper_ore", "deepslate", "furnace",
)

_BLOCKS = (
    "air", "grass_block", "dirt", "sand", "gravel", "water", "lava", "bedrock",
    "oak_leaves", "spruce_leaves", "birch_leaves", "crafting_table", "chest",
    "torch", "tall_grass", "short_grass", "poppy", "dandelion",
    "oak_planks", "spruce_planks", "birch_planks", "jungle_planks",
    "acacia_planks", "dark_oak_planks", "mangrove_planks", "cherry_planks",
) + LOG_TYPES + BED_BLOCKS + PICKAXE_BLOCKS

_ITEMS = (
    "stick", "coal", "raw_iron", "iron_ingot", "diamond", "wheat", "bread",
    "wooden_pickaxe", "wooden_axe", "wooden_sword", "wooden_shovel",
    "stone_pickaxe", "stone_axe", "stone_sword", "stone_shovel",
    "iron_pickaxe", "iron_axe", "iron_sword", "beef", "porkchop", "mutton",
    "cooked_beef", "apple", "white_wool",
)


class GameData:
    """Names of known blocks and items plus the few category lookups actions need."""

    def __init__(self, blocks: Iterable[str] = _BLOCKS, items: Iterable[str] = _ITEMS):
        self.blocks = frozenset(blocks)
        # Every placeable block is also an item.
        self.items = frozenset(items) | (self.blocks - {"air", "water", "lava"})

    def has_block(self, name: str) -> bool:
        return name in self.blocks

    def has_item(self, name: str) -> bool:
        return name in self.items

    def is_bed(self, name: str) -> bool:
        return name in BED_BLOCKS

    def is_log(self, name: str) -> bool:
        return name in LOG_TYPES

    def requires_pickaxe(self, name: str) -> bool:
        return name in PICKAXE_BLOCKS

    def resolve_block_alias(self, name: str) -> str:
        """Map the generic ``wood``/``log`` names onto the first known log type."""
        if name in ("wood", "log"):
            for log_type in LOG_TYPES:
                if log_type in self.blocks:
                    return log_type
        return name

    @staticmethod
    def planks_source(planks_name: str) -> Optional[str]:
        """Log type a planks item is cut from, e.g. ``oak_planks`` → ``oak_log``."""
        if not planks_name.endswith("_planks"):
            return None
        return planks_name[: -len("_planks")] + "_log"
