"""
Event models for gameplay transitions.

Every transition in ``tiledm.engine.actions`` returns the new state plus
the list of events describing what happened. Events are the source of
the DM messages shown to the players and make transitions easy to assert
on in tests.

Example:
    >>> event = Event(
    ...     type=EventType.ITEM_PICKED_UP,
    ...     subject="test_item_glimmerlily_01",
    ...     context={"player_id": 0},
    ... )
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events that can occur in the game.

    Categories:
        Movement: PLAYER_MOVED, PLAYER_TURNED, NPC_MOVED
        Items: ITEM_PICKED_UP
        Quests: QUEST_STARTED, QUEST_COMPLETED, QUEST_ITEM_MISSING
        Progression: LEVEL_UP, ZONE_COMPLETED
        Dialogue: DIALOGUE_OPENED, DIALOGUE_CLOSED, NPC_SPOKE, CHAT_OPENED, CHAT_MESSAGE
        Travel: TRANSITION_OFFERED, TRANSITION_DECLINED, ZONE_ENTERED
        Meta: ACTION_REJECTED, MESSAGE_ACKNOWLEDGED, PLAYER_SWITCHED, NOTHING_HAPPENED
    """

    # Movement
    PLAYER_MOVED = "player_moved"
    PLAYER_TURNED = "player_turned"
    NPC_MOVED = "npc_moved"

    # Items
    ITEM_PICKED_UP = "item_picked_up"

    # Quests
    QUEST_STARTED = "quest_started"
    QUEST_COMPLETED = "quest_completed"
    QUEST_ITEM_MISSING = "quest_item_missing"

    # Progression
    LEVEL_UP = "level_up"
    ZONE_COMPLETED = "zone_completed"

    # Dialogue
    DIALOGUE_OPENED = "dialogue_opened"
    DIALOGUE_CLOSED = "dialogue_closed"
    NPC_SPOKE = "npc_spoke"
    CHAT_OPENED = "chat_opened"
    CHAT_MESSAGE = "chat_message"

    # Travel
    TRANSITION_OFFERED = "transition_offered"
    TRANSITION_DECLINED = "transition_declined"
    ZONE_ENTERED = "zone_entered"

    # Meta
    ACTION_REJECTED = "action_rejected"
    MESSAGE_ACKNOWLEDGED = "message_acknowledged"
    PLAYER_SWITCHED = "player_switched"
    NOTHING_HAPPENED = "nothing_happened"


class RejectionCode(str, Enum):
    """Reasons an input was refused"""

    OUT_OF_BOUNDS = "out_of_bounds"
    OBSTACLE = "obstacle"
    NPC_BLOCKING = "npc_blocking"
    PLAYER_BLOCKING = "player_blocking"
    PORTAL_LOCKED = "portal_locked"
    INVENTORY_FULL = "inventory_full"
    GAME_PAUSED = "game_paused"
    BUSY = "busy"
    CHAT_LIMIT_REACHED = "chat_limit_reached"
    INVALID_STATE = "invalid_state"


class Event(BaseModel):
    """Represents something that happened in the game world.

    Attributes:
        type: The type of event that occurred
        subject: Primary entity involved (npc_id, item_id, quest_id, zone key)
        message: DM text describing the event, if any
        context: Additional structured context
    """

    type: EventType
    subject: str | None = None
    message: str | None = None
    context: dict[str, object] = Field(default_factory=dict)


class RejectionEvent(Event):
    """Event produced when an input is refused"""

    type: EventType = EventType.ACTION_REJECTED
    rejection_code: RejectionCode
    rejection_reason: str
