"""
Interaction controller - routes player input to transitions.

Synchronous inputs (movement, menus, pickup) are applied immediately as
pure transitions on the session. Anything that waits on the gateway
(world and zone generation, Talk, Chat) raises the busy flag first,
remembers the state version, and commits its result only if nothing else
was committed in between. While busy, every other input is refused.

Two timers feed the same session: the NPC wander tick and the key-repeat
tick for a held movement key. Both run as asyncio tasks on the one event
loop, so their transitions never interleave mid-update.
"""

from __future__ import annotations

import asyncio
import logging
import random

from tiledm.config import KEY_REPEAT_INTERVAL, NPC_WANDER_CHANCE, NPC_WANDER_INTERVAL
from tiledm.engine import actions
from tiledm.engine.errors import GenerationError, StaleStateError
from tiledm.engine.generation import WorldGenerator
from tiledm.engine.protocols import ContentGatewayProtocol
from tiledm.engine.state import GameSession
from tiledm.engine.world import WorldLoader
from tiledm.llm.client import GatewayError
from tiledm.llm.schemas import DialogueContext
from tiledm.models.event import Event, RejectionCode, RejectionEvent
from tiledm.models.game import DialogueOption, GameState, GameStatus, InputAction, TransitionOption
from tiledm.models.player import ClassType, Direction
from tiledm.models.world import Position

logger = logging.getLogger(__name__)

FALLBACK_DIALOGUE = "Hmmm, let me think..."


def _rejection(code: RejectionCode, reason: str) -> list[Event]:
    return [RejectionEvent(rejection_code=code, rejection_reason=reason)]


class InteractionController:
    """Turn-free input handling for one game session.

    Args:
        session: Owner of the game state
        gateway: Generative content backend
        rng: Random source for generation and NPC wandering
        generator: World/zone generation flow (built from ``gateway`` if omitted)
    """

    def __init__(
        self,
        session: GameSession,
        gateway: ContentGatewayProtocol,
        rng: random.Random | None = None,
        generator: WorldGenerator | None = None,
    ):
        self.session = session
        self.gateway = gateway
        self.rng = rng or random.Random()
        self.generator = generator or WorldGenerator(gateway, self.rng)
        self._wander_task: asyncio.Task | None = None
        self._repeat_task: asyncio.Task | None = None

    @property
    def state(self) -> GameState:
        return self.session.state

    # =========================================================================
    # Busy bookkeeping
    # =========================================================================

    def _begin(self, message: str | None = None) -> int:
        """Raise the busy flag and return the version to commit against"""
        self.session.apply(actions.set_busy, message)
        return self.session.version

    def _finish(self, version: int, transition, *args) -> list[Event]:
        """Commit an async result, dropping it if the state moved on"""
        try:
            return self.session.apply_if_current(version, transition, *args)
        except StaleStateError:
            return []

    def _fail(self, version: int, error: Exception, dm_message: str | None = None) -> None:
        """Record a user-visible error unless the state moved on meanwhile"""
        message = getattr(error, "message", None) or str(error)
        if self.session.version == version:
            self.session.apply(actions.fail, message, dm_message)

    # =========================================================================
    # World lifecycle
    # =========================================================================

    async def new_world(self, prompt: str) -> list[Event]:
        """Generate a fresh world and its starting zone.

        Raises:
            GatewayError: If generation fails (also recorded on the state)
            GenerationError: If the starting zone is unusable (also recorded)
        """
        if self.state.is_busy:
            return _rejection(RejectionCode.BUSY, "A world is already being created.")

        version = self._begin("The cosmos stirs... a new world is being born...")
        try:
            world, start_zone = await self.generator.create_world(prompt)
        except (GatewayError, GenerationError) as e:
            logger.error(f"World creation failed: {e}")
            self._fail(version, e, "The creation failed. The ether is unstable. Try again.")
            raise

        logger.info(f"World '{world.world_name}' created")
        return self._finish(version, actions.begin_world, world, start_zone)

    async def load_world(self, world_id: str, loader: WorldLoader | None = None) -> list[Event]:
        """Start a hand-authored world from worlds/<world_id>/world.yaml.

        Raises:
            FileNotFoundError: If the world doesn't exist
            ValueError: If the world file is malformed
        """
        preset = (loader or WorldLoader()).load_world(world_id, self.rng)
        self.generator = WorldGenerator(self.gateway, self.rng, preset=preset)

        version = self._begin("Opening the storybook...")
        try:
            world, start_zone = await self.generator.start_preset()
        except (GatewayError, GenerationError) as e:
            self._fail(version, e, "The storybook's pages are blank. Try again.")
            raise
        return self._finish(version, actions.begin_world, world, start_zone)

    def create_characters(self, characters: list[tuple[str, ClassType]]) -> list[Event]:
        return self.session.apply(actions.create_players, characters)

    def dismiss_error(self) -> list[Event]:
        return self.session.apply(actions.dismiss_error)

    def end_game(self) -> list[Event]:
        self.release_direction()
        return self.session.apply(actions.end_game)

    # =========================================================================
    # Input routing
    # =========================================================================

    async def handle_input(self, action: InputAction, direction: Direction | None = None) -> list[Event]:
        """Route one input according to whatever is open on screen.

        Priority: busy flag, error, queued announcements, transition
        prompt, chat, dialogue menu, then free movement.
        """
        state = self.state

        if state.is_busy:
            return _rejection(RejectionCode.BUSY, "Please wait a moment...")
        if state.error is not None:
            return _rejection(RejectionCode.GAME_PAUSED, "Dismiss the error first.")

        if state.message_queue:
            if action in (InputAction.INTERACT, InputAction.CONFIRM, InputAction.ACKNOWLEDGE):
                return self.session.apply(actions.acknowledge_message)
            return _rejection(RejectionCode.GAME_PAUSED, "Acknowledge the message first.")

        if state.transition is not None:
            return await self._handle_transition_input(action)

        if state.chat is not None:
            if action == InputAction.CANCEL:
                return self.session.apply(actions.close_chat)
            return _rejection(RejectionCode.GAME_PAUSED, "You are in the middle of a conversation.")

        if state.dialogue is not None:
            return await self._handle_dialogue_input(action)

        if action == InputAction.MOVE:
            if direction is None:
                return _rejection(RejectionCode.INVALID_STATE, "Which way?")
            return self.session.apply(actions.move, direction)
        if action in (InputAction.INTERACT, InputAction.CONFIRM):
            return self.session.apply(actions.interact)
        if action == InputAction.SWITCH:
            return self.session.apply(actions.switch_player)
        return []

    async def _handle_transition_input(self, action: InputAction) -> list[Event]:
        if action == InputAction.MENU_UP:
            return self.session.apply(actions.menu_move, -1)
        if action == InputAction.MENU_DOWN:
            return self.session.apply(actions.menu_move, 1)
        if action == InputAction.CANCEL:
            return self.session.apply(actions.decline_transition)
        if action in (InputAction.INTERACT, InputAction.CONFIRM):
            prompt = self.state.transition
            if prompt.selected == TransitionOption.TRAVEL:
                return await self._enter(prompt.target, prompt.direction)
            return self.session.apply(actions.decline_transition)
        return _rejection(RejectionCode.GAME_PAUSED, "Choose whether to travel first.")

    async def _handle_dialogue_input(self, action: InputAction) -> list[Event]:
        if action == InputAction.MENU_UP:
            return self.session.apply(actions.menu_move, -1)
        if action == InputAction.MENU_DOWN:
            return self.session.apply(actions.menu_move, 1)
        if action == InputAction.CANCEL:
            return self.session.apply(actions.close_dialogue)
        if action in (InputAction.INTERACT, InputAction.CONFIRM):
            selected = self.state.dialogue.selected
            if selected == DialogueOption.TALK:
                return await self.talk()
            if selected == DialogueOption.CHAT:
                return self.session.apply(actions.open_chat)
            return self.session.apply(actions.close_dialogue)
        return _rejection(RejectionCode.GAME_PAUSED, "Close the conversation first.")

    # =========================================================================
    # Dialogue and chat
    # =========================================================================

    def _dialogue_context(self, state: GameState, npc_id: str) -> DialogueContext | None:
        zone = state.current_zone
        npc = zone.get_npc(npc_id) if zone else None
        if npc is None or state.world is None or state.active_player is None:
            return None
        quest = next((q for q in state.quests if q.giver_id == npc.id), None)
        return DialogueContext(
            world_name=state.world.world_name,
            storyline=state.world.main_storyline,
            zone_name=zone.name,
            zone_description=zone.description,
            zone_terrain=zone.terrain,
            npc=npc,
            player=state.active_player,
            quest=quest,
            other_npc_names=[n.name for n in zone.npcs if n.id != npc.id],
        )

    async def talk(self) -> list[Event]:
        """Ask the gateway for one fresh line from the NPC in the dialogue.

        Gateway failures fall back to a static line instead of surfacing.
        """
        dialogue = self.state.dialogue
        context = self._dialogue_context(self.state, dialogue.npc_id) if dialogue else None
        if context is None:
            return _rejection(RejectionCode.INVALID_STATE, "There is no one to talk to.")

        version = self._begin()
        try:
            line = await self.gateway.generate_dialogue(context)
        except GatewayError as e:
            logger.warning(f"Dialogue generation failed for {context.npc.id}: {e}")
            line = FALLBACK_DIALOGUE

        try:
            self.session.apply_if_current(version, actions.clear_busy)
        except StaleStateError:
            return []
        return self.session.apply(actions.set_dialogue_text, context.npc.id, line or FALLBACK_DIALOGUE)

    async def send_chat(self, message: str) -> list[Event]:
        """Send one chat message and record the NPC's reply.

        Raises:
            GatewayError: If the reply cannot be generated (also recorded)
        """
        state = self.state
        if state.chat is None:
            return _rejection(RejectionCode.INVALID_STATE, "There is no chat open.")
        if state.is_busy:
            return _rejection(RejectionCode.BUSY, "Please wait a moment...")
        if actions.chat_limit_reached(state):
            return _rejection(
                RejectionCode.CHAT_LIMIT_REACHED,
                "This conversation has run its course. Start a new one to keep talking.",
            )
        message = message.strip()
        if not message:
            return _rejection(RejectionCode.INVALID_STATE, "Say something first.")

        npc_id = state.chat.npc_id
        context = self._dialogue_context(state, npc_id)
        if context is None:
            return _rejection(RejectionCode.INVALID_STATE, "There is no one to talk to.")
        history = list(state.chat_histories.get(npc_id, []))

        version = self._begin()
        try:
            reply = await self.gateway.chat_reply(context, history, message)
        except GatewayError as e:
            logger.error(f"Chat reply failed for {npc_id}: {e}")
            self._fail(version, e)
            raise

        try:
            self.session.apply_if_current(version, actions.clear_busy)
        except StaleStateError:
            return []
        return self.session.apply(actions.record_chat_exchange, npc_id, message, reply)

    def new_conversation(self) -> list[Event]:
        return self.session.apply(actions.new_conversation)

    # =========================================================================
    # Zone transitions
    # =========================================================================

    async def _enter(self, target: Position, direction: str) -> list[Event]:
        """Travel to ``target``, generating the zone first if needed.

        On failure the prior state is kept (including an open transition
        prompt) and the error is recorded.
        """
        state = self.state
        key = target.key
        if key in state.zones:
            return self.session.apply(actions.enter_zone, target, None, direction)

        if not self.session.begin_generation(key):
            return _rejection(RejectionCode.BUSY, "That zone is already being generated.")
        try:
            cell = state.world.get_zone(target)
            name = cell.name if cell else "the unknown"
            version = self._begin(f"The way to {name} is being revealed...")
            taken_ids = {q.id for q in state.quests} | {q.objective.item_id for q in state.quests}
            try:
                built = await self.generator.generate_zone(state.world, target, taken_ids)
            except (GatewayError, GenerationError) as e:
                logger.error(f"Zone generation failed at ({target.x},{target.y}): {e}")
                self._fail(version, e, "The path ahead dissolves into mist. Try again.")
                raise
            return self._finish(version, actions.enter_zone, target, built, direction)
        finally:
            self.session.end_generation(key)

    async def warp_to_boss(self) -> list[Event]:
        """Debug: take the party straight to the final-boss zone"""
        state = self.state
        if state.status != GameStatus.PLAYING or state.world is None:
            return _rejection(RejectionCode.INVALID_STATE, "The adventure hasn't started yet.")
        if state.is_busy:
            return _rejection(RejectionCode.BUSY, "Please wait a moment...")
        target = state.world.final_boss
        if state.current_coords == target:
            return _rejection(RejectionCode.INVALID_STATE, "You are already there.")
        logger.info("Debug warp to the final-boss zone")
        return await self._enter(target, "forward")

    # =========================================================================
    # Timers
    # =========================================================================

    def wander_tick(self, chance: float = NPC_WANDER_CHANCE) -> list[Event]:
        return self.session.apply(actions.wander_npcs, self.rng, chance)

    async def _wander_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.wander_tick()

    def start_wandering(self, interval: float = NPC_WANDER_INTERVAL) -> None:
        if self._wander_task is None or self._wander_task.done():
            self._wander_task = asyncio.create_task(self._wander_loop(interval))

    def stop_wandering(self) -> None:
        if self._wander_task is not None:
            self._wander_task.cancel()
            self._wander_task = None

    def press_direction(self, direction: Direction, interval: float = KEY_REPEAT_INTERVAL) -> list[Event]:
        """Step once now, then keep stepping every ``interval`` until released"""
        self.release_direction()
        events = self.session.apply(actions.move, direction)
        self._repeat_task = asyncio.create_task(self._repeat_loop(direction, interval))
        return events

    async def _repeat_loop(self, direction: Direction, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            self.session.apply(actions.move, direction)

    def release_direction(self) -> None:
        if self._repeat_task is not None:
            self._repeat_task.cancel()
            self._repeat_task = None

    def close(self) -> None:
        self.stop_wandering()
        self.release_direction()
