"""Pydantic models for tiledm"""

from tiledm.models.world import Tile, Position, WorldMapZone, WorldInfo
from tiledm.models.zone import Item, NPC, Quest, QuestObjective, QuestStatus, Zone, NpcEntity, ItemEntity
from tiledm.models.player import Player, ClassType, Direction, Stats
from tiledm.models.game import GameState, GameStatus, InputAction, DialogueState, ChatState, ChatMessage, TransitionPrompt
from tiledm.models.event import Event, RejectionEvent, EventType, RejectionCode
from tiledm.models.validation import ValidationResult, valid_result, invalid_result

__all__ = [
    # World models
    "Tile",
    "Position",
    "WorldMapZone",
    "WorldInfo",
    # Zone models
    "Item",
    "NPC",
    "Quest",
    "QuestObjective",
    "QuestStatus",
    "Zone",
    "NpcEntity",
    "ItemEntity",
    # Player models
    "Player",
    "ClassType",
    "Direction",
    "Stats",
    # Game state
    "GameState",
    "GameStatus",
    "InputAction",
    "DialogueState",
    "ChatState",
    "ChatMessage",
    "TransitionPrompt",
    # Events
    "Event",
    "RejectionEvent",
    "EventType",
    "RejectionCode",
    # Validation
    "ValidationResult",
    "valid_result",
    "invalid_result",
]
