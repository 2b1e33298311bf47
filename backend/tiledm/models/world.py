"""
World models - tiles, grid positions and the coarse world map
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Tile(str, Enum):
    """Fixed tile vocabulary for zone grids.

    Only GRASS and PATH are walkable; everything else blocks movement.
    ENTRY and EXIT mark the portals laid over a zone's terrain; they never
    appear in a tile grid coming from the generator.
    """

    GRASS = "grass"
    PATH = "path"
    TREE = "tree"
    WATER = "water"
    BUILDING = "building"
    ENTRY = "entry"
    EXIT = "exit"

    @property
    def walkable(self) -> bool:
        return self in WALKABLE_TILES


WALKABLE_TILES = frozenset({Tile.GRASS, Tile.PATH})

# Tiles the generator may legitimately emit
GENERATED_TILES = (Tile.GRASS, Tile.PATH, Tile.TREE, Tile.WATER, Tile.BUILDING)

TileGrid = list[list[Tile]]


class Position(BaseModel):
    """Integer grid coordinate. Hashable, so it can live in sets."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int

    def neighbors(self) -> list[Position]:
        """The four orthogonal neighbors (right, left, down, up)."""
        return [
            Position(x=self.x + 1, y=self.y),
            Position(x=self.x - 1, y=self.y),
            Position(x=self.x, y=self.y + 1),
            Position(x=self.x, y=self.y - 1),
        ]

    def offset(self, dx: int, dy: int) -> Position:
        return Position(x=self.x + dx, y=self.y + dy)

    def manhattan(self, other: Position) -> int:
        return abs(self.x - other.x) + abs(self.y - other.y)

    @property
    def key(self) -> str:
        """String key used for dict lookups (zone cache, visited sets)."""
        return f"{self.x},{self.y}"

    @classmethod
    def from_key(cls, key: str) -> Position:
        x, y = key.split(",")
        return cls(x=int(x), y=int(y))


def in_bounds(tile_map: TileGrid, position: Position) -> bool:
    """Check whether a position lies inside a rectangular tile grid"""
    if not tile_map:
        return False
    return 0 <= position.y < len(tile_map) and 0 <= position.x < len(tile_map[0])


def tile_at(tile_map: TileGrid, position: Position) -> Tile | None:
    """Get the tile at a position, or None when out of bounds"""
    if not in_bounds(tile_map, position):
        return None
    return tile_map[position.y][position.x]


def is_walkable(tile_map: TileGrid, position: Position) -> bool:
    """Out-of-bounds positions are never walkable"""
    tile = tile_at(tile_map, position)
    return tile is not None and tile in WALKABLE_TILES


class WorldMapZone(BaseModel):
    """One cell of the coarse world grid. Immutable once generated."""

    model_config = ConfigDict(frozen=True)

    name: str
    terrain: str
    description: str = ""
    x: int
    y: int

    @property
    def position(self) -> Position:
        return Position(x=self.x, y=self.y)


class WorldInfo(BaseModel):
    """Generated world metadata plus the precomputed story path"""

    world_name: str
    main_storyline: str
    world_map: list[list[WorldMapZone]]
    start: Position
    final_boss: Position
    path: list[Position] = Field(default_factory=list)

    @property
    def grid_size(self) -> int:
        return len(self.world_map)

    def get_zone(self, position: Position) -> WorldMapZone | None:
        """Get a world map cell by coordinate"""
        if 0 <= position.y < len(self.world_map) and 0 <= position.x < len(self.world_map[position.y]):
            return self.world_map[position.y][position.x]
        return None

    def path_index(self, position: Position) -> int | None:
        """Index of a coordinate on the story path, or None if off-path"""
        try:
            return self.path.index(position)
        except ValueError:
            return None

    def previous_on_path(self, position: Position) -> Position | None:
        index = self.path_index(position)
        if index is None or index == 0:
            return None
        return self.path[index - 1]

    def next_on_path(self, position: Position) -> Position | None:
        index = self.path_index(position)
        if index is None or index + 1 >= len(self.path):
            return None
        return self.path[index + 1]
