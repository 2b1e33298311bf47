"""
Game state models - the aggregate root for one local two-player session
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from tiledm.models.player import Player
from tiledm.models.world import Position, WorldInfo
from tiledm.models.zone import Quest, QuestStatus, Zone


class GameStatus(str, Enum):
    WORLD_CREATION = "world_creation"
    CHARACTER_CREATION = "character_creation"
    PLAYING = "playing"


class InputAction(str, Enum):
    """Discrete player inputs"""

    MOVE = "move"
    INTERACT = "interact"
    SWITCH = "switch"
    MENU_UP = "menu_up"
    MENU_DOWN = "menu_down"
    CONFIRM = "confirm"
    CANCEL = "cancel"
    ACKNOWLEDGE = "acknowledge"


class DialogueOption(str, Enum):
    TALK = "Talk"
    CHAT = "Chat"
    CLOSE = "Close"


DIALOGUE_OPTIONS: list[DialogueOption] = [DialogueOption.TALK, DialogueOption.CHAT, DialogueOption.CLOSE]


class TransitionOption(str, Enum):
    TRAVEL = "Travel"
    STAY = "Stay"


TRANSITION_OPTIONS: list[TransitionOption] = [TransitionOption.TRAVEL, TransitionOption.STAY]


class DialogueState(BaseModel):
    """Open dialogue menu with an NPC"""

    npc_id: str
    text: str
    menu_selection_index: int = 0

    @property
    def selected(self) -> DialogueOption:
        return DIALOGUE_OPTIONS[self.menu_selection_index]


class ChatMessage(BaseModel):
    author: Literal["player", "npc"]
    text: str


class ChatState(BaseModel):
    """Open multi-turn chat with an NPC"""

    npc_id: str
    messages_sent: int = 0


class TransitionPrompt(BaseModel):
    """Pending Travel/Stay question after bumping into a portal"""

    target: Position
    direction: Literal["forward", "backward"]
    menu_selection_index: int = 0

    @property
    def selected(self) -> TransitionOption:
        return TRANSITION_OPTIONS[self.menu_selection_index]


class GameState(BaseModel):
    """Current game session state.

    ``version`` increases with every committed transition so async work
    (gateway calls) can detect that the state moved on while it waited.
    """

    status: GameStatus = GameStatus.WORLD_CREATION
    version: int = 0

    world: WorldInfo | None = None
    zones: dict[str, Zone] = Field(default_factory=dict)  # keyed by Position.key
    quests: list[Quest] = Field(default_factory=list)
    players: list[Player] = Field(default_factory=list, max_length=2)
    current_coords: Position | None = None
    active_player_id: int = 0

    dialogue: DialogueState | None = None
    chat: ChatState | None = None
    chat_histories: dict[str, list[ChatMessage]] = Field(default_factory=dict)  # keyed by npc id
    transition: TransitionPrompt | None = None

    dm_message: str = "Welcome, adventurer. A new world awaits your story."
    message_queue: list[str] = Field(default_factory=list)

    visited_zones: list[str] = Field(default_factory=list)
    completed_zones: list[str] = Field(default_factory=list)

    is_busy: bool = False
    error: str | None = None

    @property
    def current_zone(self) -> Zone | None:
        if self.current_coords is None:
            return None
        return self.zones.get(self.current_coords.key)

    @property
    def active_player(self) -> Player | None:
        if self.active_player_id < len(self.players):
            return self.players[self.active_player_id]
        return None

    @property
    def other_player(self) -> Player | None:
        other = (self.active_player_id + 1) % 2
        if other < len(self.players):
            return self.players[other]
        return None

    @property
    def is_paused(self) -> bool:
        """Paused while any modal, menu or generation request is open"""
        return (
            self.dialogue is not None
            or self.chat is not None
            or self.transition is not None
            or bool(self.message_queue)
            or self.is_busy
            or self.error is not None
        )

    def get_quest(self, quest_id: str) -> Quest | None:
        """Get a quest by ID"""
        for quest in self.quests:
            if quest.id == quest_id:
                return quest
        return None

    def quest_for_item(self, item_id: str) -> Quest | None:
        """Find the quest whose objective is the given item"""
        for quest in self.quests:
            if quest.objective.item_id == item_id:
                return quest
        return None

    def active_quests(self) -> list[Quest]:
        return [q for q in self.quests if q.status == QuestStatus.ACTIVE]
