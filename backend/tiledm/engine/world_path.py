"""
World path generation.

The story path is a simple (non-self-intersecting) chain of world-grid
coordinates from the start zone to the final-boss zone, found with a
randomized depth-first search. The search keeps an explicit stack
instead of recursing, so its depth is bounded by the grid size and never
by the interpreter's recursion limit.
"""

from __future__ import annotations

import logging
import random
from typing import Literal

from tiledm.models.world import Position

logger = logging.getLogger(__name__)


def _in_grid(position: Position, grid_size: int) -> bool:
    return 0 <= position.x < grid_size and 0 <= position.y < grid_size


def generate_path(
    start: Position,
    end: Position,
    grid_size: int,
    rng: random.Random | None = None,
) -> list[Position]:
    """Randomized DFS path from ``start`` to ``end``.

    Each stack frame holds a cell plus its shuffled neighbors still to be
    tried. Cells are marked visited on entry and never revisited, so the
    path is simple by construction. The search stops the moment ``end``
    is reached; the result is not necessarily the shortest path.

    Args:
        start: First coordinate of the path
        end: Last coordinate of the path
        grid_size: Width/height of the square world grid
        rng: Random source for neighbor order

    Returns:
        Ordered coordinates from start to end. If the search ever fails,
        a degenerate two-cell ``[start, end]`` path is returned instead.
    """
    rng = rng or random.Random()

    if start == end:
        return [start]

    visited: set[Position] = {start}
    path: list[Position] = [start]
    stack: list[list[Position]] = [_shuffled_neighbors(start, rng)]

    while stack:
        pending = stack[-1]
        advanced = False

        while pending:
            candidate = pending.pop()
            if candidate in visited or not _in_grid(candidate, grid_size):
                continue
            visited.add(candidate)
            path.append(candidate)
            if candidate == end:
                return path
            stack.append(_shuffled_neighbors(candidate, rng))
            advanced = True
            break

        if not advanced:
            # Dead end: backtrack
            stack.pop()
            path.pop()

    logger.warning(
        f"No world path found from ({start.x},{start.y}) to ({end.x},{end.y}); using a degenerate path"
    )
    return [start, end]


def _shuffled_neighbors(position: Position, rng: random.Random) -> list[Position]:
    neighbors = position.neighbors()
    rng.shuffle(neighbors)
    # Popped from the end, so reverse to try them in shuffled order
    neighbors.reverse()
    return neighbors


def pick_endpoints(grid_size: int, rng: random.Random | None = None) -> tuple[Position, Position]:
    """Choose the start zone on the left column and the boss zone on the right"""
    rng = rng or random.Random()
    start = Position(x=0, y=rng.randrange(grid_size))
    end = Position(x=grid_size - 1, y=rng.randrange(grid_size))
    return start, end


def is_valid_path(path: list[Position], start: Position, end: Position) -> bool:
    """Check endpoints, grid adjacency of consecutive steps and no repeats"""
    if not path or path[0] != start or path[-1] != end:
        return False
    if len(set(path)) != len(path):
        return False
    return all(a.manhattan(b) == 1 for a, b in zip(path, path[1:]))


def travel_direction(
    path: list[Position],
    current: Position,
    target: Position,
) -> Literal["forward", "backward"] | None:
    """Whether moving to ``target`` follows the story forward or backward.

    Returns None if either coordinate is off the path.
    """
    try:
        current_index = path.index(current)
        target_index = path.index(target)
    except ValueError:
        return None
    if target_index > current_index:
        return "forward"
    if target_index < current_index:
        return "backward"
    return None
