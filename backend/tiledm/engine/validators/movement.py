"""
Movement validator.

This module validates single grid steps, for players and for wandering
NPCs, against the current zone: bounds, obstacle tiles, NPCs and the
other player. Portal tiles are obstacles to walk onto but report which
portal was bumped, so the caller can offer a zone transition.
"""

from __future__ import annotations

from tiledm.engine.progression import is_zone_completed
from tiledm.engine.world_path import travel_direction
from tiledm.models.event import RejectionCode
from tiledm.models.game import GameState
from tiledm.models.player import Direction
from tiledm.models.validation import ValidationResult, invalid_result, valid_result
from tiledm.models.world import Position, Tile
from tiledm.models.zone import NPC, Zone


class MovementValidator:
    """Validates one-tile steps against zone rules.

    Checks:
        1. Destination is inside the zone
        2. Destination is a portal (reported, never walked onto)
        3. Destination tile is walkable
        4. No NPC stands there
        5. The other player does not stand there

    Returns ValidationResult with:
        - valid=True: ``destination`` in context, plus ``portal`` and
          ``target`` when an open portal was bumped
        - valid=False: rejection code and reason

    Example:
        >>> validator = MovementValidator()
        >>> result = validator.validate(state, Direction.LEFT)
        >>> if result.valid and "portal" not in result.context:
        ...     destination = result.context["destination"]
    """

    def validate(self, state: GameState, direction: Direction) -> ValidationResult:
        """Validate a step of the active player.

        Args:
            state: Current game state
            direction: Direction of the step

        Returns:
            ValidationResult indicating success or failure with reason
        """
        zone = state.current_zone
        player = state.active_player
        if zone is None or player is None:
            return invalid_result(
                code=RejectionCode.INVALID_STATE,
                reason="There is nowhere to walk yet.",
            )

        dx, dy = direction.delta
        destination = player.position.offset(dx, dy)
        tile = zone.tile_at(destination)

        if tile is None:
            return invalid_result(
                code=RejectionCode.OUT_OF_BOUNDS,
                reason="You can't go that way.",
                destination=destination,
            )

        portal = zone.portal_at(destination)
        if portal == Tile.ENTRY:
            return self._validate_entry(state, destination)
        if portal == Tile.EXIT:
            return self._validate_exit(state, zone, destination)

        if not tile.walkable:
            return invalid_result(
                code=RejectionCode.OBSTACLE,
                reason=f"The way is blocked by {tile.value}.",
                destination=destination,
            )

        npc = zone.npc_at(destination)
        if npc is not None:
            return invalid_result(
                code=RejectionCode.NPC_BLOCKING,
                reason=f"{npc.name} is in the way.",
                destination=destination,
                npc_id=npc.id,
            )

        other = state.other_player
        if other is not None and other.position == destination:
            return invalid_result(
                code=RejectionCode.PLAYER_BLOCKING,
                reason=f"{other.name} is in the way.",
                destination=destination,
            )

        return valid_result(destination=destination)

    def _validate_entry(self, state: GameState, destination: Position) -> ValidationResult:
        """The entry portal is always open and leads back along the path"""
        target = state.world.previous_on_path(state.current_coords) if state.world else None
        if target is None:
            return invalid_result(
                code=RejectionCode.OBSTACLE,
                reason="The way back is overgrown.",
                destination=destination,
            )
        direction = travel_direction(state.world.path, state.current_coords, target)
        return valid_result(destination=destination, portal="entry", target=target, direction=direction)

    def _validate_exit(self, state: GameState, zone: Zone, destination: Position) -> ValidationResult:
        """The exit portal opens once every quest of the zone is completed"""
        if not is_zone_completed(zone, state.quests):
            return invalid_result(
                code=RejectionCode.PORTAL_LOCKED,
                reason="The way forward is sealed. Help the people here first.",
                destination=destination,
            )
        target = state.world.next_on_path(state.current_coords) if state.world else None
        if target is None:
            return invalid_result(
                code=RejectionCode.OBSTACLE,
                reason="There is nowhere further to go.",
                destination=destination,
            )
        direction = travel_direction(state.world.path, state.current_coords, target)
        return valid_result(destination=destination, portal="exit", target=target, direction=direction)


def can_npc_step(zone: Zone, npc: NPC, destination: Position, blocked: set[Position]) -> bool:
    """Whether a wandering NPC may step onto ``destination``.

    Same rules as for players. NPCs also keep off portals and items lying
    on the ground so neither is ever hidden underneath one. ``blocked``
    holds the players' positions plus any other reserved tiles.
    """
    if not zone.is_walkable(destination) or zone.portal_at(destination) is not None:
        return False
    if destination in blocked:
        return False
    other_npc = zone.npc_at(destination)
    if other_npc is not None and other_npc.id != npc.id:
        return False
    return zone.item_at(destination) is None
