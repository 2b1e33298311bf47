"""Small builders shared by the test modules"""

from __future__ import annotations

import random

from tiledm.engine.world import WorldPreset
from tiledm.engine.zone_builder import BuiltZone, ZoneBuilder
from tiledm.models.game import GameState
from tiledm.models.player import Direction
from tiledm.models.world import Position, Tile

SYMBOLS = {".": Tile.GRASS, "=": Tile.PATH, "T": Tile.TREE, "~": Tile.WATER, "#": Tile.BUILDING}


def grid_from_rows(rows: list[str]) -> list[list[Tile]]:
    """Tile grid from symbol rows ('.' grass, '=' path, 'T' tree, '~' water, '#' building)"""
    return [[SYMBOLS[c] for c in row] for row in rows]


def build_preset_zone(preset: WorldPreset, coords: Position, rng: random.Random) -> BuiltZone:
    """Assemble one authored zone the way the generation flow does"""
    world = preset.world
    zone_preset = preset.zones[coords.key]
    return ZoneBuilder(rng).build(
        coords,
        world.get_zone(coords),
        zone_preset.layout,
        zone_preset.population,
        came_from=world.previous_on_path(coords),
        next_coords=world.next_on_path(coords),
        is_starting_zone=coords == world.start,
    )


def place_active(state: GameState, position: Position, direction: Direction | None = None) -> GameState:
    """Teleport the active player, optionally turning them"""
    player = state.active_player
    update: dict = {"position": position}
    if direction is not None:
        update["direction"] = direction
    moved = player.model_copy(update=update)
    return state.model_copy(update={"players": [moved if p.id == moved.id else p for p in state.players]})
