"""
Gameplay transitions.

Every function here is pure: it takes the current GameState (plus the
input) and returns an ActionResult holding the next state and the events
describing what happened. Nothing is edited in place; new versions of
players, zones and quests are produced with ``model_copy(update=...)``.
A transition that changes nothing returns the very same state object, so
the session can skip the commit.

The session (``tiledm.engine.state``) owns the current state and decides
when a result is committed.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field

from tiledm.config import MAX_CHAT_MESSAGES, NPC_WANDER_CHANCE
from tiledm.engine.connectivity import largest_walkable_region
from tiledm.engine.placement import adjacent_free_pair, nearby_free_positions
from tiledm.engine.progression import (
    activate_quest,
    award_xp,
    complete_quest,
    is_zone_completed,
    replace_quest,
    zone_quests,
)
from tiledm.engine.validators.movement import MovementValidator, can_npc_step
from tiledm.engine.zone_builder import BuiltZone
from tiledm.models.event import Event, EventType, RejectionCode, RejectionEvent
from tiledm.models.game import (
    DIALOGUE_OPTIONS,
    TRANSITION_OPTIONS,
    ChatMessage,
    ChatState,
    DialogueState,
    GameState,
    GameStatus,
    TransitionPrompt,
)
from tiledm.models.player import ClassType, Direction, Player
from tiledm.models.world import Position, WorldInfo
from tiledm.models.zone import NPC, Quest, QuestStatus, Zone

logger = logging.getLogger(__name__)

ZONE_COMPLETED_MESSAGE = "You've completed all local quests! A path to a new area has opened."
INVENTORY_FULL_MESSAGE = "Your inventory is full!"
DEFAULT_GREETING = "Greetings, traveler."

_movement_validator = MovementValidator()


@dataclass
class ActionResult:
    """Next state plus what happened on the way there"""

    state: GameState
    events: list[Event] = field(default_factory=list)

    @property
    def rejection(self) -> RejectionEvent | None:
        for event in self.events:
            if isinstance(event, RejectionEvent):
                return event
        return None


# =============================================================================
# Helpers
# =============================================================================


def _reject(state: GameState, code: RejectionCode, reason: str, subject: str | None = None) -> ActionResult:
    return ActionResult(
        state=state,
        events=[RejectionEvent(rejection_code=code, rejection_reason=reason, subject=subject)],
    )


def _check_playing(state: GameState) -> ActionResult | None:
    """Rejection for inputs that need an unpaused game in progress, else None"""
    if state.status != GameStatus.PLAYING or state.current_zone is None or state.active_player is None:
        return _reject(state, RejectionCode.INVALID_STATE, "The adventure hasn't started yet.")
    if state.is_busy:
        return _reject(state, RejectionCode.BUSY, "Please wait a moment...")
    if state.is_paused:
        return _reject(state, RejectionCode.GAME_PAUSED, "Finish what you're doing first.")
    return None


def _replace_player(players: list[Player], updated: Player) -> list[Player]:
    return [updated if p.id == updated.id else p for p in players]


def _with_zone(state: GameState, zone: Zone) -> dict[str, Zone]:
    zones = dict(state.zones)
    zones[zone.coords.key] = zone
    return zones


def _replace_npc(zone: Zone, updated: NPC) -> Zone:
    return zone.model_copy(update={"npcs": [updated if n.id == updated.id else n for n in zone.npcs]})


def _quest_for_npc(state: GameState, npc: NPC) -> Quest | None:
    for quest in state.quests:
        if quest.giver_id == npc.id:
            return quest
    return None


def _quest_item_holder(state: GameState, quest: Quest) -> Player | None:
    """Player carrying the quest item, checking the active player first"""
    candidates = [state.active_player, state.other_player]
    for player in candidates:
        if player is not None and player.has_item(quest.objective.item_id):
            return player
    return None


def _says(npc: NPC, text: str) -> str:
    return f'{npc.name} says: "{text}"'


def _refresh_zone_completion(state: GameState) -> tuple[GameState, list[Event]]:
    """Mark the current zone completed once all its quests are done.

    Zones without quests are marked silently; zones that had quests queue
    an announcement the players must acknowledge. Runs after every change
    to the quest list, and on arrival in a zone.
    """
    zone = state.current_zone
    if zone is None or zone.coords.key in state.completed_zones:
        return state, []
    if not is_zone_completed(zone, state.quests):
        return state, []

    update: dict = {"completed_zones": [*state.completed_zones, zone.coords.key]}
    events: list[Event] = []
    if zone_quests(zone, state.quests):
        update["message_queue"] = [*state.message_queue, ZONE_COMPLETED_MESSAGE]
        events.append(Event(type=EventType.ZONE_COMPLETED, subject=zone.coords.key, message=ZONE_COMPLETED_MESSAGE))
        logger.info(f"Zone '{zone.name}' completed")
    return state.model_copy(update=update), events


# =============================================================================
# Session lifecycle
# =============================================================================


def begin_world(state: GameState, world: WorldInfo, start: BuiltZone) -> ActionResult:
    """Install a freshly generated world and its starting zone"""
    zone = start.zone
    message = f"Welcome to {world.world_name}. The story is: {world.main_storyline}"
    new_state = GameState(
        status=GameStatus.CHARACTER_CREATION,
        version=state.version,
        world=world,
        zones={zone.coords.key: zone},
        quests=list(start.quests),
        current_coords=zone.coords,
        dm_message=message,
    )
    return ActionResult(
        state=new_state,
        events=[Event(type=EventType.ZONE_ENTERED, subject=zone.coords.key, message=message)],
    )


def create_players(state: GameState, characters: list[tuple[str, ClassType]]) -> ActionResult:
    """Create both players and start playing.

    Players start on the zone's spawn points, or on the first pair of
    adjacent free tiles if the zone has none.

    Raises:
        ValueError: If not exactly two characters are given
    """
    if len(characters) != 2:
        raise ValueError("Exactly two characters are required")
    zone = state.current_zone
    if state.status != GameStatus.CHARACTER_CREATION or zone is None:
        return _reject(state, RejectionCode.INVALID_STATE, "Characters can only be created for a new world.")

    spawn = zone.spawn_points
    if spawn is None:
        blocked = {npc.position for npc in zone.npcs} | zone.portal_positions()
        spawn = adjacent_free_pair(blocked, largest_walkable_region(zone.tile_map))

    players = [
        Player.create(index, name.strip() or f"Player {index + 1}", class_type, spawn[index])
        for index, (name, class_type) in enumerate(characters)
    ]
    message = (
        f"{players[0].name} the {players[0].class_type.value} and "
        f"{players[1].name} the {players[1].class_type.value} begin their adventure!"
    )
    new_state = state.model_copy(
        update={
            "status": GameStatus.PLAYING,
            "players": players,
            "active_player_id": 0,
            "visited_zones": [zone.coords.key],
            "dm_message": message,
        }
    )
    new_state, events = _refresh_zone_completion(new_state)
    return ActionResult(state=new_state, events=events)


def end_game(state: GameState) -> ActionResult:
    """Throw everything away and go back to world creation"""
    return ActionResult(state=GameState(version=state.version), events=[])


def set_busy(state: GameState, message: str | None = None) -> ActionResult:
    update: dict = {"is_busy": True}
    if message:
        update["dm_message"] = message
    return ActionResult(state=state.model_copy(update=update), events=[])


def clear_busy(state: GameState) -> ActionResult:
    return ActionResult(state=state.model_copy(update={"is_busy": False}), events=[])


def fail(state: GameState, message: str, dm_message: str | None = None) -> ActionResult:
    """Record a user-visible error. Everything else stays as it was."""
    update: dict = {"is_busy": False, "error": message}
    if dm_message:
        update["dm_message"] = dm_message
    return ActionResult(state=state.model_copy(update=update), events=[])


def dismiss_error(state: GameState) -> ActionResult:
    if state.error is None:
        return ActionResult(state=state)
    return ActionResult(
        state=state.model_copy(update={"error": None}),
        events=[Event(type=EventType.MESSAGE_ACKNOWLEDGED, message=state.error)],
    )


# =============================================================================
# Movement
# =============================================================================


def move(state: GameState, direction: Direction) -> ActionResult:
    """One grid step of the active player.

    A refused step still turns the player to face the way they tried to
    go. Bumping an open portal opens the Travel/Stay prompt instead of
    moving.
    """
    rejected = _check_playing(state)
    if rejected:
        return rejected

    player = state.active_player
    turned = player if player.direction == direction else player.model_copy(update={"direction": direction})
    turned_players = _replace_player(state.players, turned)

    result = _movement_validator.validate(state, direction)

    if not result.valid:
        update: dict = {"players": turned_players}
        if result.rejection_code == RejectionCode.PORTAL_LOCKED:
            update["dm_message"] = result.rejection_reason
        new_state = state if turned is player and len(update) == 1 else state.model_copy(update=update)
        return ActionResult(state=new_state, events=[result.to_rejection_event(subject=str(player.id))])

    if "portal" in result.context:
        target: Position = result.context["target"]
        target_cell = state.world.get_zone(target) if state.world else None
        target_name = target_cell.name if target_cell else "unknown lands"
        message = f"The path leads to {target_name}. Travel there?"
        new_state = state.model_copy(
            update={
                "players": turned_players,
                "transition": TransitionPrompt(target=target, direction=result.context["direction"]),
                "dm_message": message,
            }
        )
        return ActionResult(
            state=new_state,
            events=[Event(type=EventType.TRANSITION_OFFERED, subject=target.key, message=message)],
        )

    destination: Position = result.context["destination"]
    moved = turned.model_copy(update={"position": destination})
    return ActionResult(
        state=state.model_copy(update={"players": _replace_player(state.players, moved)}),
        events=[
            Event(
                type=EventType.PLAYER_MOVED,
                subject=str(player.id),
                context={"from": player.position, "to": destination},
            )
        ],
    )


def switch_player(state: GameState) -> ActionResult:
    rejected = _check_playing(state)
    if rejected:
        return rejected
    new_id = (state.active_player_id + 1) % len(state.players)
    new_state = state.model_copy(update={"active_player_id": new_id})
    return ActionResult(
        state=new_state,
        events=[Event(type=EventType.PLAYER_SWITCHED, subject=str(new_id))],
    )


def wander_npcs(
    state: GameState,
    rng: random.Random | None = None,
    chance: float = NPC_WANDER_CHANCE,
) -> ActionResult:
    """Each NPC of the current zone may take one random step.

    Nothing moves while the game is paused. NPCs move one after another,
    so two of them can never end up on the same tile.
    """
    rng = rng or random.Random()
    zone = state.current_zone
    if state.status != GameStatus.PLAYING or zone is None or state.is_paused:
        return ActionResult(state=state)

    # Players, plus the drop spots of quests whose item has not appeared yet
    blocked = {p.position for p in state.players}
    blocked.update(
        q.objective.target_position for q in zone_quests(zone, state.quests) if q.status == QuestStatus.INACTIVE
    )
    events: list[Event] = []

    for npc in list(zone.npcs):
        if rng.random() >= chance:
            continue
        dx, dy = rng.choice(list(Direction)).delta
        destination = npc.position.offset(dx, dy)
        if can_npc_step(zone, npc, destination, blocked):
            zone = _replace_npc(zone, npc.model_copy(update={"position": destination}))
            events.append(
                Event(type=EventType.NPC_MOVED, subject=npc.id, context={"from": npc.position, "to": destination})
            )

    if not events:
        return ActionResult(state=state)
    return ActionResult(state=state.model_copy(update={"zones": _with_zone(state, zone)}), events=events)


# =============================================================================
# Interaction
# =============================================================================


def interact(state: GameState) -> ActionResult:
    """Pick up the item underfoot, or talk to the NPC being faced"""
    rejected = _check_playing(state)
    if rejected:
        return rejected

    player = state.active_player
    zone = state.current_zone

    item = zone.item_at(player.position)
    if item is not None:
        return _pick_up(state, player, zone, item.id)

    npc = zone.npc_at(player.facing_position())
    if npc is not None:
        return _open_dialogue(state, npc)

    return ActionResult(state=state, events=[Event(type=EventType.NOTHING_HAPPENED)])


def _pick_up(state: GameState, player: Player, zone: Zone, item_id: str) -> ActionResult:
    if player.inventory_full:
        rejection = RejectionEvent(
            rejection_code=RejectionCode.INVENTORY_FULL,
            rejection_reason=INVENTORY_FULL_MESSAGE,
            subject=item_id,
        )
        return ActionResult(state=state.model_copy(update={"dm_message": INVENTORY_FULL_MESSAGE}), events=[rejection])

    item = next(i for i in zone.items if i.id == item_id)
    held = item.model_copy(update={"position": None})
    updated_player = player.model_copy(update={"inventory": [*player.inventory, held]})
    updated_zone = zone.model_copy(update={"items": [i for i in zone.items if i.id != item_id]})
    message = f"You picked up: {item.name}."

    return ActionResult(
        state=state.model_copy(
            update={
                "players": _replace_player(state.players, updated_player),
                "zones": _with_zone(state, updated_zone),
                "dm_message": message,
            }
        ),
        events=[Event(type=EventType.ITEM_PICKED_UP, subject=item_id, message=message, context={"player_id": player.id})],
    )


def _open_dialogue(state: GameState, npc: NPC) -> ActionResult:
    """Open the dialogue menu, advancing the NPC's quest where applicable"""
    quest = _quest_for_npc(state, npc)
    events: list[Event] = []

    if quest is not None and quest.status == QuestStatus.INACTIVE:
        state, events, text, message = _start_quest(state, npc, quest)
    elif quest is not None and quest.status == QuestStatus.ACTIVE:
        holder = _quest_item_holder(state, quest)
        if holder is not None:
            state, events, message = _finish_quest(state, quest, holder)
            text = quest.completion_dialogue or "Thank you, truly!"
        else:
            text = f"You don't have the {quest.objective.item_name} yet."
            message = _says(npc, text)
            events.append(Event(type=EventType.QUEST_ITEM_MISSING, subject=quest.id, message=message))
    else:
        text = npc.initial_dialogue or DEFAULT_GREETING
        message = _says(npc, text)

    events.insert(0, Event(type=EventType.DIALOGUE_OPENED, subject=npc.id))
    state = state.model_copy(
        update={"dialogue": DialogueState(npc_id=npc.id, text=text), "dm_message": message}
    )
    state, completion_events = _refresh_zone_completion(state)
    return ActionResult(state=state, events=events + completion_events)


def _start_quest(state: GameState, npc: NPC, quest: Quest) -> tuple[GameState, list[Event], str, str]:
    """inactive -> active: the quest item appears at its target position"""
    activated = activate_quest(quest)
    zone = state.current_zone
    items = list(zone.items)
    if not any(i.id == activated.objective.item_id for i in items):
        items.append(activated.spawn_item())

    message = f'Quest Started: {quest.title}! {npc.name} says: "{quest.description}"'
    new_state = state.model_copy(
        update={
            "quests": replace_quest(state.quests, activated),
            "zones": _with_zone(state, zone.model_copy(update={"items": items})),
        }
    )
    logger.info(f"Quest started: {quest.id}")
    return new_state, [Event(type=EventType.QUEST_STARTED, subject=quest.id, message=message)], quest.description, message


def _finish_quest(state: GameState, quest: Quest, holder: Player) -> tuple[GameState, list[Event], str]:
    """active -> completed: hand in the item, both players get the reward"""
    completed = complete_quest(quest)
    events: list[Event] = []
    level_messages: list[str] = []
    players: list[Player] = []

    for player in state.players:
        if player.id == holder.id:
            player = player.model_copy(
                update={"inventory": [i for i in player.inventory if i.id != quest.objective.item_id]}
            )
        player, levels = award_xp(player, quest.xp_reward)
        if levels:
            level_messages.append(f"{player.name} leveled up to level {player.stats.level}!")
            events.append(
                Event(type=EventType.LEVEL_UP, subject=str(player.id), context={"level": player.stats.level, "levels": levels})
            )
        players.append(player)

    message = f"Quest Complete: {quest.title}! Both players gained {quest.xp_reward} XP."
    if level_messages:
        message += " " + " ".join(level_messages)

    events.insert(0, Event(type=EventType.QUEST_COMPLETED, subject=quest.id, message=message))
    logger.info(f"Quest completed: {quest.id}")
    new_state = state.model_copy(update={"quests": replace_quest(state.quests, completed), "players": players})
    return new_state, events, message


# =============================================================================
# Dialogue menu and chat
# =============================================================================


def menu_move(state: GameState, delta: int) -> ActionResult:
    """Move the selection of whichever menu is open, wrapping around"""
    if state.transition is not None:
        index = (state.transition.menu_selection_index + delta) % len(TRANSITION_OPTIONS)
        prompt = state.transition.model_copy(update={"menu_selection_index": index})
        return ActionResult(state=state.model_copy(update={"transition": prompt}), events=[])
    if state.dialogue is not None and state.chat is None:
        index = (state.dialogue.menu_selection_index + delta) % len(DIALOGUE_OPTIONS)
        dialogue = state.dialogue.model_copy(update={"menu_selection_index": index})
        return ActionResult(state=state.model_copy(update={"dialogue": dialogue}), events=[])
    return _reject(state, RejectionCode.INVALID_STATE, "There is no menu open.")


def close_dialogue(state: GameState) -> ActionResult:
    """Close the dialogue, handing in the quest item if someone carries it"""
    if state.dialogue is None:
        return _reject(state, RejectionCode.INVALID_STATE, "There is no conversation to close.")

    npc_id = state.dialogue.npc_id
    events: list[Event] = []
    update: dict = {"dialogue": None, "chat": None}

    zone = state.current_zone
    npc = zone.get_npc(npc_id) if zone else None
    quest = _quest_for_npc(state, npc) if npc else None
    if quest is not None and quest.status == QuestStatus.ACTIVE:
        holder = _quest_item_holder(state, quest)
        if holder is not None:
            state, events, message = _finish_quest(state, quest, holder)
            update["dm_message"] = message

    state = state.model_copy(update=update)
    state, completion_events = _refresh_zone_completion(state)
    events.append(Event(type=EventType.DIALOGUE_CLOSED, subject=npc_id))
    return ActionResult(state=state, events=events + completion_events)


def set_dialogue_text(state: GameState, npc_id: str, text: str) -> ActionResult:
    """Show a freshly generated line in the open dialogue"""
    if state.dialogue is None or state.dialogue.npc_id != npc_id:
        return ActionResult(state=state)
    zone = state.current_zone
    npc = zone.get_npc(npc_id) if zone else None
    name = npc.name if npc else "Someone"
    message = f'{name} says: "{text}"'
    return ActionResult(
        state=state.model_copy(
            update={"dialogue": state.dialogue.model_copy(update={"text": text}), "dm_message": message}
        ),
        events=[Event(type=EventType.NPC_SPOKE, subject=npc_id, message=text)],
    )


def _player_message_count(history: list[ChatMessage]) -> int:
    return sum(1 for m in history if m.author == "player")


def open_chat(state: GameState) -> ActionResult:
    """Open the chat window with the NPC of the open dialogue"""
    if state.dialogue is None:
        return _reject(state, RejectionCode.INVALID_STATE, "There is no one to chat with.")
    npc_id = state.dialogue.npc_id
    history = state.chat_histories.get(npc_id, [])
    chat = ChatState(npc_id=npc_id, messages_sent=_player_message_count(history))
    return ActionResult(
        state=state.model_copy(update={"chat": chat}),
        events=[Event(type=EventType.CHAT_OPENED, subject=npc_id)],
    )


def close_chat(state: GameState) -> ActionResult:
    if state.chat is None:
        return ActionResult(state=state)
    return ActionResult(state=state.model_copy(update={"chat": None}), events=[])


def chat_limit_reached(state: GameState) -> bool:
    return state.chat is not None and state.chat.messages_sent >= MAX_CHAT_MESSAGES


def record_chat_exchange(state: GameState, npc_id: str, player_text: str, npc_text: str) -> ActionResult:
    """Append one player message and the NPC's reply to the history"""
    if state.chat is None or state.chat.npc_id != npc_id:
        return ActionResult(state=state)
    if chat_limit_reached(state):
        return _reject(
            state,
            RejectionCode.CHAT_LIMIT_REACHED,
            "This conversation has run its course. Start a new one to keep talking.",
            subject=npc_id,
        )

    history = [
        *state.chat_histories.get(npc_id, []),
        ChatMessage(author="player", text=player_text),
        ChatMessage(author="npc", text=npc_text),
    ]
    histories = dict(state.chat_histories)
    histories[npc_id] = history
    chat = state.chat.model_copy(update={"messages_sent": state.chat.messages_sent + 1})
    return ActionResult(
        state=state.model_copy(update={"chat_histories": histories, "chat": chat}),
        events=[Event(type=EventType.CHAT_MESSAGE, subject=npc_id, message=npc_text)],
    )


def new_conversation(state: GameState) -> ActionResult:
    """Start the chat over: history cleared, message budget restored"""
    if state.chat is None:
        return _reject(state, RejectionCode.INVALID_STATE, "There is no chat open.")
    npc_id = state.chat.npc_id
    histories = dict(state.chat_histories)
    histories.pop(npc_id, None)
    return ActionResult(
        state=state.model_copy(
            update={"chat_histories": histories, "chat": ChatState(npc_id=npc_id)}
        ),
        events=[Event(type=EventType.CHAT_OPENED, subject=npc_id)],
    )


def acknowledge_message(state: GameState) -> ActionResult:
    """Dismiss the announcement at the head of the queue"""
    if not state.message_queue:
        return ActionResult(state=state)
    head, *rest = state.message_queue
    return ActionResult(
        state=state.model_copy(update={"message_queue": rest, "dm_message": head}),
        events=[Event(type=EventType.MESSAGE_ACKNOWLEDGED, message=head)],
    )


# =============================================================================
# Zone transitions
# =============================================================================


def decline_transition(state: GameState) -> ActionResult:
    if state.transition is None:
        return ActionResult(state=state)
    message = "You decide to stay a while longer."
    return ActionResult(
        state=state.model_copy(update={"transition": None, "dm_message": message}),
        events=[Event(type=EventType.TRANSITION_DECLINED, subject=state.transition.target.key, message=message)],
    )


def _arrival_positions(zone: Zone, portal: Position | None) -> tuple[Position, Position]:
    """Two free tiles for the arriving party, as close to ``portal`` as possible"""
    region = largest_walkable_region(zone.tile_map)
    blocked = {npc.position for npc in zone.npcs} | zone.portal_positions()

    if portal is not None:
        spots = nearby_free_positions(portal, region, blocked, 2)
        if len(spots) == 2:
            return spots[0], spots[1]

    if zone.spawn_points is not None and not blocked.intersection(zone.spawn_points):
        return zone.spawn_points

    return adjacent_free_pair(blocked, region)


def enter_zone(
    state: GameState,
    target: Position,
    built: BuiltZone | None,
    direction: str = "forward",
) -> ActionResult:
    """Move the party into the zone at ``target``.

    ``built`` is the freshly assembled zone when ``target`` was not cached
    yet; it is ignored otherwise. Going forward the party appears next to
    the destination's entry portal, going backward next to its exit.

    Raises:
        ValueError: If the zone is neither cached nor supplied
    """
    key = target.key
    zones = dict(state.zones)
    quests = list(state.quests)

    if key not in zones:
        if built is None:
            raise ValueError(f"Zone ({target.x},{target.y}) has not been generated")
        zones[key] = built.zone
        quests.extend(built.quests)

    zone = zones[key]
    portal = zone.entry_position if direction == "forward" else zone.exit_position
    first, second = _arrival_positions(zone, portal)

    active_id = state.active_player_id
    players = []
    for player in state.players:
        spot = first if player.id == active_id else second
        players.append(player.model_copy(update={"position": spot}))

    visited = state.visited_zones if key in state.visited_zones else [*state.visited_zones, key]
    message = f"You arrive at {zone.name}. {zone.description}".strip()

    new_state = state.model_copy(
        update={
            "zones": zones,
            "quests": quests,
            "players": players,
            "current_coords": target,
            "transition": None,
            "dialogue": None,
            "chat": None,
            "visited_zones": visited,
            "dm_message": message,
            "is_busy": False,
        }
    )
    new_state, events = _refresh_zone_completion(new_state)
    logger.info(f"Party entered zone '{zone.name}' at ({target.x},{target.y})")
    return ActionResult(
        state=new_state,
        events=[Event(type=EventType.ZONE_ENTERED, subject=key, message=message), *events],
    )
