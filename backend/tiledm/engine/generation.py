"""
World and zone generation flow.

Orchestrates the gateway and the zone assembly pipeline:

    prompt -> world facts -> endpoints + story path -> starting zone
    coordinate -> layout -> region check -> population -> ZoneBuilder

Zones that come back unplayable or malformed are requested again, up to
a fixed number of attempts. Nothing is returned until a zone has been
fully assembled, so callers never see partial results.
"""

from __future__ import annotations

import logging
import random

from tiledm.config import MIN_REGION_SIZE, WORLD_GRID_SIZE, ZONE_GENERATION_ATTEMPTS, ZONE_SIZE
from tiledm.engine.connectivity import ensure_playable
from tiledm.engine.errors import GenerationError
from tiledm.engine.protocols import ContentGatewayProtocol
from tiledm.engine.world import WorldPreset
from tiledm.engine.world_path import generate_path, pick_endpoints
from tiledm.engine.zone_builder import BuiltZone, ZoneBuilder
from tiledm.llm.client import GatewayError, GatewayErrorKind
from tiledm.llm.schemas import PopulationRequest, WorldResponse
from tiledm.models.world import Position, WorldInfo, WorldMapZone

logger = logging.getLogger(__name__)

# Failures worth asking the generator again for the whole zone
REGENERATE_KINDS = frozenset(
    {GatewayErrorKind.PARSE, GatewayErrorKind.SCHEMA, GatewayErrorKind.EMPTY_RESPONSE}
)


def world_from_response(
    response: WorldResponse,
    rng: random.Random | None = None,
) -> WorldInfo:
    """Build world info from generated facts, choosing endpoints and the story path locally"""
    rng = rng or random.Random()
    grid_size = len(response.world_map)

    world_map = [
        [
            WorldMapZone(name=cell.name, terrain=cell.terrain, description=cell.description, x=x, y=y)
            for x, cell in enumerate(row)
        ]
        for y, row in enumerate(response.world_map)
    ]
    start, final_boss = pick_endpoints(grid_size, rng)
    path = generate_path(start, final_boss, grid_size, rng)

    logger.info(
        f"World path for '{response.world_name}': {len(path)} zones from "
        f"({start.x},{start.y}) to ({final_boss.x},{final_boss.y})"
    )
    return WorldInfo(
        world_name=response.world_name,
        main_storyline=response.main_storyline,
        world_map=world_map,
        start=start,
        final_boss=final_boss,
        path=path,
    )


class WorldGenerator:
    """Generates worlds and zones through a content gateway.

    Args:
        gateway: Source of generated content
        rng: Random source for endpoints, path and placement repairs
        preset: Hand-authored world whose zones are used instead of the
            gateway where available
        attempts: Whole-zone attempts before giving up
    """

    def __init__(
        self,
        gateway: ContentGatewayProtocol,
        rng: random.Random | None = None,
        preset: WorldPreset | None = None,
        attempts: int = ZONE_GENERATION_ATTEMPTS,
        grid_size: int = WORLD_GRID_SIZE,
        zone_size: int = ZONE_SIZE,
        min_region_size: int = MIN_REGION_SIZE,
    ):
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.preset = preset
        self.attempts = max(1, attempts)
        self.grid_size = grid_size
        self.zone_size = zone_size
        self.min_region_size = min_region_size
        self.builder = ZoneBuilder(self.rng, min_region_size)

    async def create_world(self, prompt: str) -> tuple[WorldInfo, BuiltZone]:
        """Generate a world and its starting zone.

        Raises:
            GatewayError: If the world request fails
            GenerationError: If the starting zone cannot be assembled
        """
        response = await self.gateway.generate_world(prompt, self.grid_size)
        world = world_from_response(response, self.rng)
        start_zone = await self.generate_zone(world, world.start, set())
        return world, start_zone

    async def start_preset(self) -> tuple[WorldInfo, BuiltZone]:
        """Start the preset world at its first zone"""
        if self.preset is None:
            raise GenerationError("No preset world loaded")
        world = self.preset.world
        return world, await self.generate_zone(world, world.start, set())

    async def generate_zone(
        self,
        world: WorldInfo,
        coords: Position,
        taken_ids: set[str],
    ) -> BuiltZone:
        """Produce the assembled zone at ``coords``.

        Args:
            world: The world the zone belongs to
            coords: World-grid coordinate of the zone
            taken_ids: Quest and item ids already used elsewhere

        Raises:
            GatewayError: If the gateway fails in a way regeneration cannot fix
            GenerationError: If every attempt produced an unusable zone
        """
        world_zone = world.get_zone(coords)
        if world_zone is None:
            raise GenerationError(f"Coordinate ({coords.x},{coords.y}) is not on the world map")

        came_from = world.previous_on_path(coords)
        next_coords = world.next_on_path(coords)
        is_starting_zone = coords == world.start

        preset = self.preset.zones.get(coords.key) if self.preset else None
        if preset is not None:
            logger.info(f"Using authored zone '{preset.layout.zone_name}' at ({coords.x},{coords.y})")
            return self.builder.build(
                coords,
                world_zone,
                preset.layout,
                preset.population,
                came_from=came_from,
                next_coords=next_coords,
                is_starting_zone=is_starting_zone,
                taken_ids=set(taken_ids),
            )

        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                layout = await self.gateway.generate_zone_layout(
                    world_zone.name, world_zone.terrain, world_zone.description, self.zone_size
                )
                # Reject unplayable maps before paying for population
                ensure_playable(layout.tile_map, self.min_region_size)

                previous = world.get_zone(came_from) if came_from else None
                request = PopulationRequest(
                    world_name=world.world_name,
                    storyline=world.main_storyline,
                    zone_name=layout.zone_name or world_zone.name,
                    terrain=world_zone.terrain,
                    zone_description=world_zone.description,
                    tile_map=layout.tile_map,
                    is_starting_zone=is_starting_zone,
                    previous_zone_description=previous.description if previous else None,
                    has_next_zone=next_coords is not None,
                    is_final_boss_zone=coords == world.final_boss,
                    target_coords=coords,
                    came_from_coords=came_from,
                    next_zone_coords=next_coords,
                )
                population = await self.gateway.populate_zone(request)

                return self.builder.build(
                    coords,
                    world_zone,
                    layout,
                    population,
                    came_from=came_from,
                    next_coords=next_coords,
                    is_starting_zone=is_starting_zone,
                    taken_ids=set(taken_ids),
                )
            except GatewayError as e:
                if e.kind not in REGENERATE_KINDS:
                    raise
                last_error = e
            except GenerationError as e:
                last_error = e

            logger.warning(
                f"Zone ({coords.x},{coords.y}) attempt {attempt}/{self.attempts} failed: {last_error}"
            )

        assert last_error is not None
        raise last_error
