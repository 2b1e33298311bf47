"""
Gateway request and response schemas.

The generator speaks camelCase JSON; these models accept it through an
alias generator and expose snake_case attributes. Structural problems
(missing fields, wrong types, tiles outside the vocabulary) fail
validation outright. Only positions are repaired later, by the zone
assembly pipeline.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tiledm.models.player import Player
from tiledm.models.world import GENERATED_TILES, Position, Tile, TileGrid
from tiledm.models.zone import NPC, NPCStats, Quest


class GatewayModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_rectangular(rows: list[list], what: str) -> None:
    if not rows or not rows[0]:
        raise ValueError(f"{what} must not be empty")
    width = len(rows[0])
    if any(len(row) != width for row in rows):
        raise ValueError(f"{what} must be rectangular")


# =============================================================================
# World
# =============================================================================


class WorldMapCell(GatewayModel):
    name: str
    terrain: str
    description: str = ""


class WorldResponse(GatewayModel):
    """generateWorld response. Start, boss and path are computed locally."""

    world_name: str
    main_storyline: str
    world_map: list[list[WorldMapCell]]

    @field_validator("world_map")
    @classmethod
    def check_square(cls, value: list[list[WorldMapCell]]) -> list[list[WorldMapCell]]:
        _check_rectangular(value, "worldMap")
        if len(value) != len(value[0]):
            raise ValueError("worldMap must be a square grid")
        return value


# =============================================================================
# Zone layout
# =============================================================================


class ZoneLayoutResponse(GatewayModel):
    """generateZoneLayout response"""

    zone_name: str
    tile_map: TileGrid

    @field_validator("tile_map", mode="before")
    @classmethod
    def normalize_tiles(cls, value: object) -> object:
        if isinstance(value, list):
            return [
                [cell.strip().lower() if isinstance(cell, str) else cell for cell in row]
                if isinstance(row, list)
                else row
                for row in value
            ]
        return value

    @field_validator("tile_map")
    @classmethod
    def check_tiles(cls, value: TileGrid) -> TileGrid:
        _check_rectangular(value, "tileMap")
        for row in value:
            for tile in row:
                if tile not in GENERATED_TILES:
                    raise ValueError(f"tile '{tile.value}' is not allowed in a generated layout")
        return value


# =============================================================================
# Zone population
# =============================================================================


class QuestObjectiveSpec(GatewayModel):
    type: Literal["fetch"] = "fetch"
    item_id: str
    item_name: str
    item_description: str = ""
    item_emoji: str = ""
    target_position: Position


class QuestSpec(GatewayModel):
    """Quest as proposed by the generator. Always starts inactive."""

    id: str
    title: str
    description: str
    completion_dialogue: str = ""
    status: Literal["inactive"] = "inactive"
    xp_reward: int = Field(default=50, ge=0)
    objective: QuestObjectiveSpec


class NPCSpec(GatewayModel):
    """NPC as proposed by the generator. Ids are assigned at assembly."""

    name: str
    role: str = ""
    description: str = ""
    personality: str = ""
    initial_dialogue: str = ""
    stats: NPCStats = Field(default_factory=NPCStats)
    position: Position
    quest: QuestSpec | None = None


class ZonePopulationResponse(GatewayModel):
    """populateZone response"""

    npcs: list[NPCSpec] = Field(default_factory=list)
    entry_position: Position | None = None
    exit_position: Position | None = None
    initial_spawn_points: list[Position] | None = None


class PopulationRequest(BaseModel):
    """Everything the generator needs to people a freshly laid-out zone"""

    world_name: str
    storyline: str
    zone_name: str
    terrain: str
    zone_description: str = ""
    tile_map: TileGrid
    is_starting_zone: bool
    previous_zone_description: str | None = None
    has_next_zone: bool
    is_final_boss_zone: bool
    target_coords: Position | None = None
    came_from_coords: Position | None = None
    next_zone_coords: Position | None = None


# =============================================================================
# Dialogue
# =============================================================================


class DialogueContext(BaseModel):
    """Who is talking to whom, and where"""

    world_name: str
    storyline: str
    zone_name: str
    zone_description: str = ""
    zone_terrain: str = ""
    npc: NPC
    player: Player
    quest: Quest | None = None
    other_npc_names: list[str] = Field(default_factory=list)

    @property
    def has_quest_item(self) -> bool:
        return self.quest is not None and self.player.has_item(self.quest.objective.item_id)


def render_tile_map(tile_map: TileGrid) -> str:
    """Compact one-row-per-line rendering for prompts"""
    symbols = {
        Tile.GRASS: ".",
        Tile.PATH: "=",
        Tile.TREE: "T",
        Tile.WATER: "~",
        Tile.BUILDING: "#",
        Tile.ENTRY: "E",
        Tile.EXIT: "X",
    }
    return "\n".join("".join(symbols[tile] for tile in row) for row in tile_map)
