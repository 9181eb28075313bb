"""Immutable 3-D vector used for positions, offsets and block faces."""
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def offset(self, dx: float, dy: float, dz: float) -> "Vec3":
        return Vec3(self.x + dx, self.y + dy, self.z + dz)

    def plus(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def minus(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def scaled(self, factor: float) -> "Vec3":
        return Vec3(self.x * factor, self.y * factor, self.z * factor)

    def distance_to(self, other: "Vec3") -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def floored(self) -> "Vec3":
        return Vec3(math.floor(self.x), math.floor(self.y), math.floor(self.z))

    def rounded(self) -> "Vec3":
        return Vec3(round(self.x), round(self.y), round(self.z))

    def key(self) -> str:
        """Spatial-memory key of the integer block containing this point."""
        v = self.floored()
        return f"{int(v.x)},{int(v.y)},{int(v.z)}"

    def as_tuple(self):
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({format_coord(self.x)}, {format_coord(self.y)}, {format_coord(self.z)})"


def format_coord(value: float) -> str:
    """Render a coordinate without a trailing ``.0`` for whole numbers."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.1f}"
