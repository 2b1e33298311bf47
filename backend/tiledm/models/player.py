"""
Player models - character classes, stats, abilities and inventory
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from tiledm.config import INVENTORY_CAPACITY
from tiledm.models.world import Position
from tiledm.models.zone import Item


class ClassType(str, Enum):
    WIZARD = "Wizard"
    WARRIOR = "Warrior"


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def delta(self) -> tuple[int, int]:
        return _DIRECTION_DELTAS[self]


_DIRECTION_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}


class DamageType(str, Enum):
    PHYSICAL = "Physical"
    MAGICAL = "Magical"


class EffectType(str, Enum):
    HEAL = "Heal"


class AbilityEffect(BaseModel):
    type: EffectType
    amount: int


class Ability(BaseModel):
    """A class ability, unlocked once the character reaches ``level``"""

    level: int
    name: str
    description: str
    damage: int = 0
    damage_type: DamageType | None = None
    effect: AbilityEffect | None = None


class Stats(BaseModel):
    """Player stats. ``str``/``int``/``def`` are exposed under their short aliases."""

    model_config = ConfigDict(populate_by_name=True)

    hp: int
    max_hp: int
    strength: int = Field(alias="str")
    intelligence: int = Field(alias="int")
    defense: int = Field(alias="def")
    xp: int = 0
    level: int = 1
    next_level_xp: int = 100


class CharacterClass(BaseModel):
    type: ClassType
    base_stats: Stats
    abilities: list[Ability]


CHARACTER_CLASSES: dict[ClassType, CharacterClass] = {
    ClassType.WIZARD: CharacterClass(
        type=ClassType.WIZARD,
        base_stats=Stats(hp=10, max_hp=10, strength=2, intelligence=8, defense=2),
        abilities=[
            Ability(level=1, name="Firebolt", description="Hurl a mote of magical fire.", damage=8, damage_type=DamageType.MAGICAL),
            Ability(level=2, name="Magic Missile", description="Three darts of magical force strike a target.", damage=12, damage_type=DamageType.MAGICAL),
            Ability(level=4, name="Shield", description="A barrier of force protects you."),
        ],
    ),
    ClassType.WARRIOR: CharacterClass(
        type=ClassType.WARRIOR,
        base_stats=Stats(hp=15, max_hp=15, strength=8, intelligence=2, defense=5),
        abilities=[
            Ability(level=1, name="Slash", description="A basic but reliable sword attack.", damage=6, damage_type=DamageType.PHYSICAL),
            Ability(level=2, name="Power Attack", description="A mighty swing that can break defenses.", damage=10, damage_type=DamageType.PHYSICAL),
            Ability(
                level=4,
                name="Second Wind",
                description="Regain a small amount of health.",
                effect=AbilityEffect(type=EffectType.HEAL, amount=8),
            ),
        ],
    ),
}


def abilities_for_level(class_type: ClassType, level: int) -> list[Ability]:
    """All abilities in the class table whose level requirement is met"""
    return [a for a in CHARACTER_CLASSES[class_type].abilities if a.level <= level]


class Player(BaseModel):
    """One of the two local players"""

    id: int = Field(ge=0, le=1)
    name: str
    class_type: ClassType
    stats: Stats
    abilities: list[Ability] = Field(default_factory=list)
    position: Position
    direction: Direction = Direction.DOWN
    inventory: list[Item] = Field(default_factory=list, max_length=INVENTORY_CAPACITY)

    @classmethod
    def create(cls, player_id: int, name: str, class_type: ClassType, position: Position) -> Player:
        """Create a fresh level-1 character of the given class"""
        base = CHARACTER_CLASSES[class_type].base_stats
        return cls(
            id=player_id,
            name=name,
            class_type=class_type,
            stats=base.model_copy(),
            abilities=abilities_for_level(class_type, base.level),
            position=position,
        )

    @property
    def inventory_full(self) -> bool:
        return len(self.inventory) >= INVENTORY_CAPACITY

    def has_item(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self.inventory)

    def facing_position(self) -> Position:
        dx, dy = self.direction.delta
        return self.position.offset(dx, dy)
