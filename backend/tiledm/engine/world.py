"""
World loader - Load hand-authored worlds from YAML files

A world file describes the world map, the story path and the raw
layout/population of some or all zones. Zones are written in exactly the
shape the gateway returns, so they go through the same assembly pipeline
as generated ones and get the same repairs.
"""

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from pydantic import ValidationError

from tiledm.config import get_worlds_dir
from tiledm.engine.world_path import generate_path, is_valid_path
from tiledm.llm.schemas import ZoneLayoutResponse, ZonePopulationResponse
from tiledm.models.world import Position, Tile, WorldInfo, WorldMapZone

logger = logging.getLogger(__name__)

# One character per tile in the ``tiles`` rows of a zone
TILE_SYMBOLS = {
    ".": Tile.GRASS,
    "=": Tile.PATH,
    "T": Tile.TREE,
    "~": Tile.WATER,
    "#": Tile.BUILDING,
}


@dataclass
class ZonePreset:
    layout: ZoneLayoutResponse
    population: ZonePopulationResponse


@dataclass
class WorldPreset:
    """A loaded world plus the zones it ships with, keyed by coordinate"""

    world_id: str
    world: WorldInfo
    zones: dict[str, ZonePreset] = field(default_factory=dict)


class WorldLoader:
    """Loads game worlds from YAML files"""

    def __init__(self, worlds_dir: str | Path | None = None):
        """Initialize with worlds directory path"""
        self.worlds_dir = Path(worlds_dir) if worlds_dir is not None else get_worlds_dir()

    def list_worlds(self) -> list[dict]:
        """List available worlds with metadata"""
        worlds = []

        if not self.worlds_dir.exists():
            return worlds

        for world_path in sorted(self.worlds_dir.iterdir()):
            world_yaml = world_path / "world.yaml"
            if not world_yaml.exists():
                continue
            try:
                with open(world_yaml) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Skipping unreadable world '{world_path.name}': {e}")
                continue
            storyline = data.get("main_storyline", "")
            worlds.append({
                "id": world_path.name,
                "name": data.get("world_name", world_path.name),
                "description": storyline[:200] + "..." if len(storyline) > 200 else storyline,
            })

        return worlds

    def load_world(self, world_id: str, rng: random.Random | None = None) -> WorldPreset:
        """
        Load a complete world from its world.yaml.

        Args:
            world_id: The world identifier (folder name in worlds/)
            rng: Random source, used only if the file has no explicit path

        Returns:
            WorldPreset with the world info and its authored zones

        Raises:
            FileNotFoundError: If the world doesn't exist
            ValueError: If the file is malformed
        """
        world_yaml = self.worlds_dir / world_id / "world.yaml"
        if not world_yaml.exists():
            raise FileNotFoundError(f"World '{world_id}' not found at {world_yaml.parent}")

        with open(world_yaml) as f:
            data = yaml.safe_load(f) or {}

        try:
            world = self._parse_world(data, rng)
            zones = {
                key: self._parse_zone(zone_data)
                for key, zone_data in (data.get("zones") or {}).items()
            }
        except (ValidationError, KeyError, TypeError) as e:
            raise ValueError(f"World '{world_id}' is malformed: {e}") from e

        for key in zones:
            if Position.from_key(key) not in world.path:
                raise ValueError(f"World '{world_id}' defines zone {key} which is not on the story path")

        logger.info(f"Loaded world '{world.world_name}' ({world_id}) with {len(zones)} authored zone(s)")
        return WorldPreset(world_id=world_id, world=world, zones=zones)

    def _parse_world(self, data: dict, rng: random.Random | None) -> WorldInfo:
        world_map = [
            [
                WorldMapZone(
                    name=cell["name"],
                    terrain=cell.get("terrain", ""),
                    description=cell.get("description", ""),
                    x=x,
                    y=y,
                )
                for x, cell in enumerate(row)
            ]
            for y, row in enumerate(data["world_map"])
        ]
        start = Position.model_validate(data["start"])
        final_boss = Position.model_validate(data["final_boss"])

        if "path" in data:
            path = [Position.model_validate(p) for p in data["path"]]
            if not is_valid_path(path, start, final_boss):
                raise ValueError("path must run from start to final_boss in single orthogonal steps")
        else:
            path = generate_path(start, final_boss, len(world_map), rng)

        return WorldInfo(
            world_name=data["world_name"],
            main_storyline=data["main_storyline"],
            world_map=world_map,
            start=start,
            final_boss=final_boss,
            path=path,
        )

    def _parse_zone(self, data: dict) -> ZonePreset:
        tile_map = [[_symbol_to_tile(symbol) for symbol in row] for row in data["tiles"]]
        layout = ZoneLayoutResponse(zone_name=data["zone_name"], tile_map=tile_map)
        population = ZonePopulationResponse.model_validate(
            {k: v for k, v in data.items() if k not in ("zone_name", "tiles")}
        )
        return ZonePreset(layout=layout, population=population)


def _symbol_to_tile(symbol: str) -> Tile:
    try:
        return TILE_SYMBOLS[symbol]
    except KeyError:
        raise ValueError(f"Unknown tile symbol '{symbol}'") from None
