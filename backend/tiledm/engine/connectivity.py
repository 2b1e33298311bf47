"""
Connectivity analysis for zone tile grids.

Finds the largest 4-connected region of walkable tiles with a
breadth-first flood fill. Every entity and portal placed in a zone must
land inside this region, which guarantees the zone is fully traversable
from any spawn point.
"""

from __future__ import annotations

import logging
from collections import deque

from tiledm.config import MIN_REGION_SIZE
from tiledm.engine.errors import UnplayableMapError
from tiledm.models.world import Position, TileGrid, is_walkable

logger = logging.getLogger(__name__)


def walkable_positions(tile_map: TileGrid) -> list[Position]:
    """All walkable positions in row-major order"""
    return [
        Position(x=x, y=y)
        for y, row in enumerate(tile_map)
        for x, _ in enumerate(row)
        if is_walkable(tile_map, Position(x=x, y=y))
    ]


def flood_fill(tile_map: TileGrid, start: Position) -> set[Position]:
    """Collect every walkable position reachable from ``start``.

    Returns an empty set if ``start`` itself is not walkable.
    """
    if not is_walkable(tile_map, start):
        return set()

    visited: set[Position] = {start}
    queue: deque[Position] = deque([start])

    while queue:
        current = queue.popleft()
        for neighbor in current.neighbors():
            if neighbor in visited:
                continue
            if not is_walkable(tile_map, neighbor):
                continue
            visited.add(neighbor)
            queue.append(neighbor)

    return visited


def largest_walkable_region(tile_map: TileGrid) -> set[Position]:
    """Find the largest 4-connected set of walkable tiles.

    Seeds a flood fill from every walkable cell not yet visited, scanning
    in row-major order. Ties keep the component found first, so the result
    is deterministic for a given grid.

    Args:
        tile_map: Rectangular grid of tiles

    Returns:
        The largest connected region; empty for an all-obstacle grid
    """
    seen: set[Position] = set()
    largest: set[Position] = set()

    for position in walkable_positions(tile_map):
        if position in seen:
            continue
        component = flood_fill(tile_map, position)
        seen |= component
        if len(component) > len(largest):
            largest = component

    return largest


def ensure_playable(tile_map: TileGrid, minimum: int = MIN_REGION_SIZE) -> set[Position]:
    """Return the largest walkable region, or fail if it is too small.

    Raises:
        UnplayableMapError: If the region has fewer than ``minimum`` tiles
    """
    region = largest_walkable_region(tile_map)
    if len(region) < minimum:
        logger.warning(f"Rejecting zone map: connected region {len(region)} < {minimum}")
        raise UnplayableMapError(len(region), minimum)

    logger.debug(f"Connected region has {len(region)} tiles")
    return region
