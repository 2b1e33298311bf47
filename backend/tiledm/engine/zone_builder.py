"""
Zone assembly pipeline.

Turns a raw generated layout plus its population into a playable Zone:

    layout -> connected region -> NPC / quest-item placement -> portals -> Zone

Nothing here touches the game state. The caller commits the result only
once ``build`` has returned, so a failure never leaves a half-built zone
behind.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from tiledm.config import MIN_REGION_SIZE
from tiledm.engine.connectivity import ensure_playable
from tiledm.engine.placement import adjacent_free_pair, validate_position
from tiledm.engine.portals import entry_side, exit_side, place_portal_or_fallback
from tiledm.llm.schemas import NPCSpec, ZoneLayoutResponse, ZonePopulationResponse
from tiledm.models.world import Position, WorldMapZone
from tiledm.models.zone import NPC, Quest, QuestObjective, QuestStatus, Zone

logger = logging.getLogger(__name__)


@dataclass
class BuiltZone:
    """An assembled zone and the quests its NPCs hand out"""

    zone: Zone
    quests: list[Quest]


def unique_id(base: str, taken: set[str]) -> str:
    """Return ``base`` or a suffixed variant not yet in ``taken``, and reserve it"""
    candidate = base
    suffix = 2
    while candidate in taken:
        candidate = f"{base}-{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


class ZoneBuilder:
    """Assembles zones from generated layout and population data.

    Args:
        rng: Random source for placement repairs and portal choice
        min_region_size: Smallest connected region accepted as playable
    """

    def __init__(self, rng: random.Random | None = None, min_region_size: int = MIN_REGION_SIZE):
        self.rng = rng or random.Random()
        self.min_region_size = min_region_size

    def build(
        self,
        coords: Position,
        world_zone: WorldMapZone,
        layout: ZoneLayoutResponse,
        population: ZonePopulationResponse,
        *,
        came_from: Position | None = None,
        next_coords: Position | None = None,
        is_starting_zone: bool = False,
        taken_ids: set[str] | None = None,
    ) -> BuiltZone:
        """Assemble a zone.

        Entities are validated in generation order: each NPC, then that
        NPC's quest item. Portals come next, then spawn points for the
        starting zone. Every accepted position is reserved before the next
        one is considered.

        Args:
            coords: World-grid coordinate of the zone
            world_zone: World map cell describing the zone
            layout: Generated tile layout
            population: Generated NPCs, quests and suggested positions
            came_from: Previous coordinate on the world path, if any
            next_coords: Next coordinate on the world path, if any
            is_starting_zone: Whether player spawn points are needed
            taken_ids: Quest and item ids already used in the world;
                updated in place with the ids this zone claims

        Returns:
            The assembled zone and its quests (all inactive)

        Raises:
            UnplayableMapError: If the connected region is too small
            PlacementError: If the region runs out of free tiles
        """
        taken_ids = taken_ids if taken_ids is not None else set()
        tile_map = [list(row) for row in layout.tile_map]

        region = ensure_playable(tile_map, self.min_region_size)
        occupied: set[Position] = set()

        npcs: list[NPC] = []
        quests: list[Quest] = []
        for index, spec in enumerate(population.npcs):
            npc, quest = self._place_npc(coords, index, spec, region, occupied, taken_ids)
            npcs.append(npc)
            if quest is not None:
                quests.append(quest)

        entry_position = None
        if came_from is not None:
            entry_position = place_portal_or_fallback(
                region,
                tile_map,
                occupied,
                entry_side(coords, came_from),
                self.rng,
                proposed=population.entry_position,
            )

        exit_position = None
        if next_coords is not None:
            exit_position = place_portal_or_fallback(
                region,
                tile_map,
                occupied,
                exit_side(coords, next_coords),
                self.rng,
                proposed=population.exit_position,
            )

        spawn_points = None
        if is_starting_zone:
            spawn_points = self._spawn_points(population.initial_spawn_points, region, occupied)

        zone = Zone(
            coords=coords,
            name=layout.zone_name or world_zone.name,
            description=world_zone.description,
            terrain=world_zone.terrain,
            tile_map=tile_map,
            npcs=npcs,
            items=[],
            entry_position=entry_position,
            exit_position=exit_position,
            spawn_points=spawn_points,
        )

        logger.info(
            f"Assembled zone '{zone.name}' at ({coords.x},{coords.y}): "
            f"{len(npcs)} NPCs, {len(quests)} quests, region {len(region)} tiles"
        )
        return BuiltZone(zone=zone, quests=quests)

    def _place_npc(
        self,
        coords: Position,
        index: int,
        spec: NPCSpec,
        region: set[Position],
        occupied: set[Position],
        taken_ids: set[str],
    ) -> tuple[NPC, Quest | None]:
        npc_id = f"npc-{coords.x}-{coords.y}-{index}"
        position = validate_position(spec.position, occupied, region, self.rng)

        quest = None
        if spec.quest is not None:
            objective = spec.quest.objective
            target = validate_position(objective.target_position, occupied, region, self.rng)
            quest = Quest(
                id=unique_id(spec.quest.id, taken_ids),
                title=spec.quest.title,
                description=spec.quest.description,
                completion_dialogue=spec.quest.completion_dialogue,
                status=QuestStatus.INACTIVE,
                xp_reward=spec.quest.xp_reward,
                objective=QuestObjective(
                    item_id=unique_id(objective.item_id, taken_ids),
                    item_name=objective.item_name,
                    item_description=objective.item_description,
                    item_emoji=objective.item_emoji,
                    target_position=target,
                ),
                giver_id=npc_id,
            )

        npc = NPC(
            id=npc_id,
            name=spec.name,
            role=spec.role,
            description=spec.description,
            personality=spec.personality,
            initial_dialogue=spec.initial_dialogue,
            stats=spec.stats,
            position=position,
        )
        return npc, quest

    def _spawn_points(
        self,
        proposed: list[Position] | None,
        region: set[Position],
        occupied: set[Position],
    ) -> tuple[Position, Position]:
        """Use the generator's two spawn points if both are free, else the first adjacent free pair"""
        if proposed and len(proposed) >= 2:
            first, second = proposed[0], proposed[1]
            if (
                first != second
                and first in region
                and second in region
                and first not in occupied
                and second not in occupied
            ):
                occupied.update((first, second))
                return first, second
            logger.debug("Generated spawn points rejected; using first adjacent free pair")

        first, second = adjacent_free_pair(occupied, region)
        occupied.update((first, second))
        return first, second
