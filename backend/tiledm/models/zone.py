"""
Zone models - NPCs, items, quests and the playable zone itself

Zones are treated as immutable values: gameplay produces new versions
with ``model_copy(update=...)`` instead of editing lists in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from tiledm.models.world import Position, Tile, TileGrid, is_walkable, tile_at


class QuestStatus(str, Enum):
    """Quest lifecycle. Only ever moves forward."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _QUEST_STATUS_ORDER[self]


_QUEST_STATUS_ORDER = {
    QuestStatus.INACTIVE: 0,
    QuestStatus.ACTIVE: 1,
    QuestStatus.COMPLETED: 2,
}


class Item(BaseModel):
    """An item lying on the map (position set) or held (position None)"""

    id: str
    name: str
    emoji: str = ""
    description: str = ""
    position: Position | None = None


class QuestObjective(BaseModel):
    """Fetch objective: bring the named item back to the quest giver"""

    type: Literal["fetch"] = "fetch"
    item_id: str
    item_name: str
    item_description: str = ""
    item_emoji: str = ""
    target_position: Position


class Quest(BaseModel):
    """A fetch quest attached to an NPC"""

    id: str
    title: str
    description: str
    completion_dialogue: str = ""
    status: QuestStatus = QuestStatus.INACTIVE
    xp_reward: int = Field(default=50, ge=0)
    objective: QuestObjective
    giver_id: str | None = None

    def spawn_item(self) -> Item:
        """Instantiate the objective item at its target position"""
        return Item(
            id=self.objective.item_id,
            name=self.objective.item_name,
            emoji=self.objective.item_emoji,
            description=self.objective.item_description,
            position=self.objective.target_position,
        )


class NPCStats(BaseModel):
    """Base combat stats. Never resolved in combat."""

    model_config = ConfigDict(populate_by_name=True)

    hp: int = 10
    strength: int = Field(default=5, alias="str")
    intelligence: int = Field(default=5, alias="int")


class NPC(BaseModel):
    """A non-player character placed in a zone.

    ``id`` is generated at assembly time and is unique across the world,
    so chat history never collides when two NPCs share a display name.
    The quest an NPC hands out lives in the game's quest log, linked
    back through ``Quest.giver_id``.
    """

    id: str
    name: str
    role: str = ""
    description: str = ""
    personality: str = ""
    initial_dialogue: str = ""
    stats: NPCStats = Field(default_factory=NPCStats)
    position: Position


class NpcEntity(BaseModel):
    """Tagged map entity wrapping an NPC"""

    kind: Literal["npc"] = "npc"
    npc: NPC


class ItemEntity(BaseModel):
    """Tagged map entity wrapping an item on the ground"""

    kind: Literal["item"] = "item"
    item: Item


MapEntity = Annotated[Union[NpcEntity, ItemEntity], Field(discriminator="kind")]


class Zone(BaseModel):
    """A playable tile-grid area, created once per world coordinate"""

    coords: Position
    name: str
    description: str = ""
    terrain: str = ""
    tile_map: TileGrid
    npcs: list[NPC] = Field(default_factory=list)
    items: list[Item] = Field(default_factory=list)
    entry_position: Position | None = None
    exit_position: Position | None = None
    spawn_points: tuple[Position, Position] | None = None

    @property
    def width(self) -> int:
        return len(self.tile_map[0]) if self.tile_map else 0

    @property
    def height(self) -> int:
        return len(self.tile_map)

    def tile_at(self, position: Position) -> Tile | None:
        return tile_at(self.tile_map, position)

    def is_walkable(self, position: Position) -> bool:
        return is_walkable(self.tile_map, position)

    def portal_at(self, position: Position) -> Tile | None:
        """Portal marker laid over ``position``, if any.

        Portals sit on top of walkable terrain; the tile grid itself is
        never changed, so the connected region stays intact.
        """
        if position == self.entry_position:
            return Tile.ENTRY
        if position == self.exit_position:
            return Tile.EXIT
        return None

    def portal_positions(self) -> set[Position]:
        return {p for p in (self.entry_position, self.exit_position) if p is not None}

    def get_npc(self, npc_id: str) -> NPC | None:
        """Get an NPC by ID"""
        for npc in self.npcs:
            if npc.id == npc_id:
                return npc
        return None

    def npc_at(self, position: Position) -> NPC | None:
        for npc in self.npcs:
            if npc.position == position:
                return npc
        return None

    def item_at(self, position: Position) -> Item | None:
        for item in self.items:
            if item.position == position:
                return item
        return None

    def entity_at(self, position: Position) -> MapEntity | None:
        """Get whatever occupies a tile, NPCs taking precedence over items"""
        npc = self.npc_at(position)
        if npc is not None:
            return NpcEntity(npc=npc)
        item = self.item_at(position)
        if item is not None:
            return ItemEntity(item=item)
        return None

    def npc_ids(self) -> set[str]:
        return {npc.id for npc in self.npcs}
