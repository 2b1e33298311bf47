"""
Placement validation and repair.

Generated positions for NPCs, quest items and spawn points are untrusted.
Each one is checked against the connected region and the set of tiles
already taken; anything invalid is silently moved to a free tile. Every
accepted position is recorded in the occupied set immediately, so
entities validated one after another can never collide.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from collections.abc import Iterable

from tiledm.engine.errors import PlacementError
from tiledm.models.world import Position

logger = logging.getLogger(__name__)

# Random picks tried before falling back to a linear scan
RANDOM_PLACEMENT_ATTEMPTS = 50


def _ordered(region: Iterable[Position]) -> list[Position]:
    """Row-major ordering so scans are deterministic regardless of set order"""
    return sorted(region, key=lambda p: (p.y, p.x))


def find_free_position(
    occupied: set[Position],
    region: set[Position],
    rng: random.Random | None = None,
) -> Position:
    """Pick an unoccupied tile from the region.

    Tries a handful of random picks first for a natural spread, then
    falls back to the first free tile in row-major order.

    Raises:
        PlacementError: If every tile of the region is occupied
    """
    rng = rng or random.Random()
    candidates = _ordered(region)

    if candidates:
        for _ in range(RANDOM_PLACEMENT_ATTEMPTS):
            pick = rng.choice(candidates)
            if pick not in occupied:
                return pick

    for candidate in candidates:
        if candidate not in occupied:
            return candidate

    raise PlacementError("Could not find any valid spawn points on the map.")


def validate_position(
    position: Position | None,
    occupied: set[Position],
    region: set[Position],
    rng: random.Random | None = None,
) -> Position:
    """Accept a proposed position or substitute a valid one.

    A position is accepted when it lies in the connected region and is
    not yet occupied. The returned position is added to ``occupied``.

    Args:
        position: Proposed position (None means "anywhere")
        occupied: Positions already taken; updated in place
        region: Connected walkable region of the zone
        rng: Random source for substitutions

    Returns:
        The accepted or substituted position
    """
    if position is not None and position in region and position not in occupied:
        accepted = position
    else:
        accepted = find_free_position(occupied, region, rng)
        if position is not None:
            logger.debug(f"Relocated entity from ({position.x},{position.y}) to ({accepted.x},{accepted.y})")

    occupied.add(accepted)
    return accepted


def adjacent_free_pair(
    occupied: set[Position],
    region: set[Position],
) -> tuple[Position, Position]:
    """First row-major pair of horizontally or vertically adjacent free tiles.

    Raises:
        PlacementError: If no such pair exists
    """
    for position in _ordered(region):
        if position in occupied:
            continue
        for partner in (position.offset(1, 0), position.offset(0, 1)):
            if partner in region and partner not in occupied:
                return position, partner
    raise PlacementError("Could not find two adjacent free tiles for the players.")


def nearby_free_positions(
    origin: Position,
    region: set[Position],
    blocked: set[Position],
    count: int,
) -> list[Position]:
    """Closest free region tiles to ``origin`` by breadth-first distance.

    ``origin`` itself is never returned; the search starts from its
    neighbors. Used to place arriving players next to a portal.
    """
    found: list[Position] = []
    visited: set[Position] = {origin}
    queue: deque[Position] = deque()

    for neighbor in origin.neighbors():
        if neighbor in region:
            visited.add(neighbor)
            queue.append(neighbor)

    while queue and len(found) < count:
        current = queue.popleft()
        if current not in blocked:
            found.append(current)
        for neighbor in current.neighbors():
            if neighbor in visited or neighbor not in region:
                continue
            visited.add(neighbor)
            queue.append(neighbor)

    return found
