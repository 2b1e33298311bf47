"""
Portal placement for zone entries and exits.

Portals sit on the zone edge that faces the neighboring zone on the
world path. If the previous zone lies to the left on the world grid, the
party arrives through the left edge; if the next zone lies above, the
exit goes on the top edge.
"""

from __future__ import annotations

import logging
import random
from enum import Enum

from tiledm.engine.placement import validate_position
from tiledm.models.world import Position, TileGrid, is_walkable

logger = logging.getLogger(__name__)


class Side(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    BOTTOM = "bottom"

    @property
    def opposite(self) -> Side:
        return _OPPOSITES[self]


_OPPOSITES = {
    Side.LEFT: Side.RIGHT,
    Side.RIGHT: Side.LEFT,
    Side.TOP: Side.BOTTOM,
    Side.BOTTOM: Side.TOP,
}


def side_towards(origin: Position, neighbor: Position) -> Side:
    """Which edge of ``origin`` faces an orthogonally adjacent ``neighbor``.

    Raises:
        ValueError: If the two coordinates are not grid-adjacent
    """
    if origin.manhattan(neighbor) != 1:
        raise ValueError(
            f"Zones ({origin.x},{origin.y}) and ({neighbor.x},{neighbor.y}) are not adjacent"
        )
    if neighbor.x > origin.x:
        return Side.RIGHT
    if neighbor.x < origin.x:
        return Side.LEFT
    if neighbor.y > origin.y:
        return Side.BOTTOM
    return Side.TOP


def entry_side(zone_coords: Position, came_from: Position) -> Side:
    """Edge the party enters through: the opposite of the travel direction"""
    travel = side_towards(came_from, zone_coords)
    return travel.opposite


def exit_side(zone_coords: Position, next_coords: Position) -> Side:
    """Edge leading on to the next zone"""
    return side_towards(zone_coords, next_coords)


def on_edge(position: Position, width: int, height: int, side: Side) -> bool:
    if side == Side.LEFT:
        return position.x == 0
    if side == Side.RIGHT:
        return position.x == width - 1
    if side == Side.TOP:
        return position.y == 0
    return position.y == height - 1


def place_portal(
    region: set[Position],
    tile_map: TileGrid,
    occupied: set[Position],
    side: Side,
    rng: random.Random | None = None,
) -> Position | None:
    """Find a portal tile on the required edge.

    Candidates are connected-region tiles lying exactly on the edge, in
    random order. The first one that is unoccupied and has at least one
    walkable orthogonal neighbor wins and is added to ``occupied``.

    Args:
        region: Connected walkable region of the zone
        tile_map: The zone's tile grid
        occupied: Positions already taken; updated in place on success
        side: Edge the portal must sit on
        rng: Random source for candidate order

    Returns:
        The portal position, or None if the edge has no usable tile
    """
    rng = rng or random.Random()
    height = len(tile_map)
    width = len(tile_map[0]) if tile_map else 0

    candidates = sorted(
        (p for p in region if on_edge(p, width, height, side)),
        key=lambda p: (p.y, p.x),
    )
    rng.shuffle(candidates)

    for candidate in candidates:
        if candidate in occupied:
            continue
        if any(is_walkable(tile_map, n) for n in candidate.neighbors()):
            occupied.add(candidate)
            return candidate

    return None


def place_portal_or_fallback(
    region: set[Position],
    tile_map: TileGrid,
    occupied: set[Position],
    side: Side,
    rng: random.Random | None = None,
    proposed: Position | None = None,
) -> Position:
    """Place a portal on its edge, falling back to any valid free tile.

    The fallback goes through the placement validator, so the portal still
    ends up inside the connected region. ``proposed`` (the generator's own
    suggestion) is tried first in the fallback.
    """
    position = place_portal(region, tile_map, occupied, side, rng)
    if position is not None:
        return position

    logger.warning(f"No usable {side.value} edge tile for portal; falling back to interior placement")
    return validate_position(proposed, occupied, region, rng)
