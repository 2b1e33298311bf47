"""Unit tests for InteractionController.

Tests cover:
- World creation and loading, with failures recorded on the state
- Input routing by what is open on screen
- Talk and Chat through the gateway
- Zone travel with cached, authored and generated zones
- Stale async results
- Debug warp and the real-time ticks
"""

import asyncio
import random

import pytest

from tiledm.engine import actions
from tiledm.engine.controller import FALLBACK_DIALOGUE, InteractionController
from tiledm.engine.generation import WorldGenerator
from tiledm.engine.state import GameSession
from tiledm.llm.client import GatewayError, GatewayErrorKind
from tiledm.models.event import EventType, RejectionCode
from tiledm.models.game import DialogueOption, GameState, GameStatus, InputAction, TransitionOption
from tiledm.models.player import ClassType, Direction
from tiledm.models.world import Position
from tiledm.models.zone import QuestStatus

from tests.helpers import place_active
from tests.mocks.llm import FakeGateway

ELARA = "npc-0-0-0"
ELARA_FRONT = Position(x=4, y=3)
BY_THE_EXIT = Position(x=18, y=6)
MANOR = Position(x=1, y=0)


def _codes(events) -> list[RejectionCode]:
    return [e.rejection_code for e in events if e.type == EventType.ACTION_REJECTED]


def _completed(state: GameState) -> GameState:
    quests = [q.model_copy(update={"status": QuestStatus.COMPLETED}) for q in state.quests]
    return state.model_copy(update={"quests": quests})


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_controller(gateway, chroma_preset):
    """Build a controller around a given state, using the authored zones by default."""

    def _factory(state: GameState, preset: bool = True) -> InteractionController:
        rng = random.Random(5)
        generator = WorldGenerator(gateway, rng, preset=chroma_preset if preset else None)
        return InteractionController(GameSession(state), gateway, rng, generator)

    return _factory


@pytest.fixture
def at_elara(plaza_state) -> GameState:
    return place_active(plaza_state, ELARA_FRONT, Direction.UP)


@pytest.fixture
def at_exit(plaza_state) -> GameState:
    return place_active(_completed(plaza_state), BY_THE_EXIT)


class TestWorldLifecycle:
    """Tests for new_world, load_world and character creation."""

    @pytest.mark.asyncio
    async def test_new_world(self, gateway) -> None:
        """A generated world waits for characters and releases the busy flag."""
        controller = InteractionController(GameSession(), gateway, random.Random(1))

        await controller.new_world("a foggy land")

        assert controller.state.status == GameStatus.CHARACTER_CREATION
        assert controller.state.world.world_name == "Test Realm"
        assert not controller.state.is_busy

    @pytest.mark.asyncio
    async def test_new_world_failure_recorded(self, gateway) -> None:
        """A failed creation is raised and left on the state as an error."""
        gateway.fail("generate_world", GatewayError("Model overloaded", GatewayErrorKind.OVERLOADED))
        controller = InteractionController(GameSession(), gateway, random.Random(1))

        with pytest.raises(GatewayError):
            await controller.new_world("a foggy land")

        state = controller.state
        assert state.error == "Model overloaded"
        assert state.dm_message == "The creation failed. The ether is unstable. Try again."
        assert not state.is_busy
        assert state.status == GameStatus.WORLD_CREATION

    @pytest.mark.asyncio
    async def test_new_world_refused_while_busy(self, gateway) -> None:
        """Only one creation at a time."""
        session = GameSession()
        session.apply(actions.set_busy, "Working...")
        controller = InteractionController(session, gateway)

        events = await controller.new_world("again")

        assert _codes(events) == [RejectionCode.BUSY]
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_load_world_then_characters(self, gateway, world_loader) -> None:
        """The authored world starts in Palette Plaza without generation calls."""
        controller = InteractionController(GameSession(), gateway, random.Random(1))

        await controller.load_world("chroma-dominion", world_loader)
        controller.create_characters([("Ayla", ClassType.WARRIOR), ("Bram", ClassType.WIZARD)])

        state = controller.state
        assert state.status == GameStatus.PLAYING
        assert state.current_zone.name == "Palette Plaza"
        assert state.players[0].position == Position(x=1, y=9)
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_load_unknown_world(self, gateway, world_loader) -> None:
        controller = InteractionController(GameSession(), gateway)
        with pytest.raises(FileNotFoundError):
            await controller.load_world("atlantis", world_loader)

    def test_end_game(self, plaza_state, make_controller) -> None:
        """Ending returns to world creation."""
        controller = make_controller(plaza_state)
        controller.end_game()
        assert controller.state.status == GameStatus.WORLD_CREATION


class TestInputRouting:
    """Tests for handle_input."""

    @pytest.mark.asyncio
    async def test_move(self, plaza_state, make_controller) -> None:
        controller = make_controller(plaza_state)
        await controller.handle_input(InputAction.MOVE, Direction.UP)
        assert controller.state.active_player.position == Position(x=1, y=8)

    @pytest.mark.asyncio
    async def test_move_needs_direction(self, plaza_state, make_controller) -> None:
        """A move without a direction is refused."""
        controller = make_controller(plaza_state)
        events = await controller.handle_input(InputAction.MOVE)
        assert _codes(events) == [RejectionCode.INVALID_STATE]

    @pytest.mark.asyncio
    async def test_busy_refuses_everything(self, plaza_state, make_controller) -> None:
        """Nothing gets through while a request is in flight."""
        controller = make_controller(actions.set_busy(plaza_state, "Thinking...").state)

        for action in (InputAction.MOVE, InputAction.INTERACT, InputAction.SWITCH):
            events = await controller.handle_input(action, Direction.UP)
            assert _codes(events) == [RejectionCode.BUSY]

        assert controller.state.active_player.position == Position(x=1, y=9)

    @pytest.mark.asyncio
    async def test_error_must_be_dismissed(self, plaza_state, make_controller) -> None:
        """An error pauses input until dismissed."""
        controller = make_controller(actions.fail(plaza_state, "Boom").state)

        events = await controller.handle_input(InputAction.MOVE, Direction.UP)
        assert _codes(events) == [RejectionCode.GAME_PAUSED]

        controller.dismiss_error()
        await controller.handle_input(InputAction.MOVE, Direction.UP)
        assert controller.state.active_player.position == Position(x=1, y=8)

    @pytest.mark.asyncio
    async def test_message_queue_acknowledged(self, plaza_state, make_controller) -> None:
        """Queued announcements swallow movement until acknowledged."""
        controller = make_controller(plaza_state.model_copy(update={"message_queue": ["Hark!"]}))

        events = await controller.handle_input(InputAction.MOVE, Direction.UP)
        assert _codes(events) == [RejectionCode.GAME_PAUSED]

        await controller.handle_input(InputAction.ACKNOWLEDGE)
        assert controller.state.message_queue == []
        assert controller.state.dm_message == "Hark!"

    @pytest.mark.asyncio
    async def test_switch(self, plaza_state, make_controller) -> None:
        controller = make_controller(plaza_state)
        await controller.handle_input(InputAction.SWITCH)
        assert controller.state.active_player.name == "Bram"

    @pytest.mark.asyncio
    async def test_dialogue_menu(self, at_elara, make_controller) -> None:
        """Interact opens the menu; Chat opens the chat; Cancel backs out."""
        controller = make_controller(at_elara)

        await controller.handle_input(InputAction.INTERACT)
        assert controller.state.dialogue.npc_id == ELARA

        events = await controller.handle_input(InputAction.MOVE, Direction.UP)
        assert _codes(events) == [RejectionCode.GAME_PAUSED]

        await controller.handle_input(InputAction.MENU_DOWN)
        assert controller.state.dialogue.selected == DialogueOption.CHAT

        await controller.handle_input(InputAction.CONFIRM)
        assert controller.state.chat.npc_id == ELARA

        await controller.handle_input(InputAction.CANCEL)
        assert controller.state.chat is None

        await controller.handle_input(InputAction.CANCEL)
        assert controller.state.dialogue is None

    @pytest.mark.asyncio
    async def test_close_option(self, at_elara, make_controller) -> None:
        """Selecting Close ends the dialogue."""
        controller = make_controller(at_elara)
        await controller.handle_input(InputAction.INTERACT)
        await controller.handle_input(InputAction.MENU_UP)

        await controller.handle_input(InputAction.INTERACT)

        assert controller.state.dialogue is None


class TestTalk:
    """Tests for the Talk option."""

    @pytest.mark.asyncio
    async def test_generated_line(self, at_elara, make_controller, gateway) -> None:
        """Talk replaces the dialogue text with a generated line."""
        controller = make_controller(at_elara)
        await controller.handle_input(InputAction.INTERACT)

        await controller.handle_input(InputAction.INTERACT)

        assert controller.state.dialogue.text == "The fog thickens at dusk."
        assert not controller.state.is_busy
        assert gateway.calls == ["generate_dialogue"]

    @pytest.mark.asyncio
    async def test_failure_falls_back(self, at_elara, make_controller, gateway) -> None:
        """A failed Talk shows a static line instead of an error."""
        gateway.fail("generate_dialogue", GatewayError("slow", GatewayErrorKind.TIMEOUT))
        controller = make_controller(at_elara)
        await controller.handle_input(InputAction.INTERACT)

        await controller.talk()

        assert controller.state.dialogue.text == FALLBACK_DIALOGUE
        assert controller.state.error is None
        assert not controller.state.is_busy

    @pytest.mark.asyncio
    async def test_nobody_to_talk_to(self, plaza_state, make_controller) -> None:
        controller = make_controller(plaza_state)
        events = await controller.talk()
        assert _codes(events) == [RejectionCode.INVALID_STATE]

    @pytest.mark.asyncio
    async def test_stale_line_discarded(self, at_elara, make_controller, gateway) -> None:
        """A line arriving after the game ended is dropped."""
        controller = make_controller(at_elara)
        await controller.handle_input(InputAction.INTERACT)

        async def end_mid_request(context):
            controller.session.apply(actions.end_game)
            return "Too late."

        gateway.generate_dialogue = end_mid_request

        events = await controller.talk()

        assert events == []
        assert controller.state.status == GameStatus.WORLD_CREATION
        assert controller.state.dialogue is None


class TestChat:
    """Tests for send_chat and new_conversation."""

    @pytest.fixture
    def chatting(self, at_elara, make_controller) -> InteractionController:
        state = actions.interact(at_elara).state
        return make_controller(actions.open_chat(state).state)

    @pytest.mark.asyncio
    async def test_exchange_recorded(self, chatting, gateway) -> None:
        """Each message and reply lands in the NPC's history."""
        await chatting.send_chat("  Where is the petal?  ")
        await chatting.send_chat("Thanks!")

        history = chatting.state.chat_histories[ELARA]
        assert [m.text for m in history] == [
            "Where is the petal?",
            "Aye, I remember that.",
            "Thanks!",
            "Aye, I remember that.",
        ]
        assert chatting.state.chat.messages_sent == 2
        assert [len(h) for h in gateway.chat_histories] == [0, 2]

    @pytest.mark.asyncio
    async def test_limit(self, chatting, gateway) -> None:
        """After five messages a new conversation is needed."""
        for i in range(5):
            await chatting.send_chat(f"Question {i}")

        events = await chatting.send_chat("One more?")
        assert _codes(events) == [RejectionCode.CHAT_LIMIT_REACHED]
        assert gateway.calls.count("chat_reply") == 5

        chatting.new_conversation()
        await chatting.send_chat("Hello again")
        assert chatting.state.chat.messages_sent == 1

    @pytest.mark.asyncio
    async def test_empty_message(self, chatting, gateway) -> None:
        events = await chatting.send_chat("   ")
        assert _codes(events) == [RejectionCode.INVALID_STATE]
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_no_chat_open(self, plaza_state, make_controller) -> None:
        controller = make_controller(plaza_state)
        events = await controller.send_chat("Hello?")
        assert _codes(events) == [RejectionCode.INVALID_STATE]

    @pytest.mark.asyncio
    async def test_failure_recorded(self, chatting, gateway) -> None:
        """A failed reply is raised and shown; the history is untouched."""
        gateway.fail("chat_reply", GatewayError("Rate limited", GatewayErrorKind.RATE_LIMITED))

        with pytest.raises(GatewayError):
            await chatting.send_chat("Hello?")

        assert chatting.state.error == "Rate limited"
        assert not chatting.state.is_busy
        assert ELARA not in chatting.state.chat_histories


class TestTravel:
    """Tests for zone transitions through the controller."""

    @pytest.mark.asyncio
    async def test_travel_to_authored_zone(self, at_exit, make_controller, gateway) -> None:
        """Bump the open exit, choose Travel, arrive at the Manor."""
        controller = make_controller(at_exit)

        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)
        assert controller.state.transition.target == MANOR

        await controller.handle_input(InputAction.INTERACT)

        state = controller.state
        assert state.current_coords == MANOR
        assert state.current_zone.name == "Monochrome Manor"
        assert state.players[0].position == Position(x=1, y=10)
        assert state.transition is None
        assert not state.is_busy
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_travel_back_uses_cache(self, at_exit, make_controller) -> None:
        """The entry portal leads back to the cached plaza."""
        controller = make_controller(at_exit)
        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)
        await controller.handle_input(InputAction.INTERACT)
        plaza_zone = controller.state.zones["0,0"]

        await controller.handle_input(InputAction.MOVE, Direction.LEFT)
        assert controller.state.transition.direction == "backward"
        await controller.handle_input(InputAction.CONFIRM)

        assert controller.state.current_coords == Position(x=0, y=0)
        assert controller.state.zones["0,0"] is plaza_zone
        assert controller.state.active_player.position == BY_THE_EXIT

    @pytest.mark.asyncio
    async def test_stay(self, at_exit, make_controller) -> None:
        """Choosing Stay closes the prompt."""
        controller = make_controller(at_exit)
        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)

        await controller.handle_input(InputAction.MENU_DOWN)
        assert controller.state.transition.selected == TransitionOption.STAY
        await controller.handle_input(InputAction.INTERACT)

        assert controller.state.transition is None
        assert controller.state.current_coords == Position(x=0, y=0)

    @pytest.mark.asyncio
    async def test_travel_generates_zone(self, at_exit, make_controller, gateway) -> None:
        """An unvisited zone without a preset is generated first."""
        controller = make_controller(at_exit, preset=False)
        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)

        await controller.handle_input(InputAction.INTERACT)

        state = controller.state
        assert gateway.calls == ["generate_zone_layout", "populate_zone"]
        assert state.current_zone.name == "Test Meadow"
        assert "quest_lost_lantern" in {q.id for q in state.quests}
        assert not controller.session.is_generating("1,0")

    @pytest.mark.asyncio
    async def test_generation_failure_keeps_prompt(self, at_exit, make_controller, gateway) -> None:
        """A failed generation leaves the party where it was, with an error."""
        gateway.fail("generate_zone_layout", GatewayError("slow", GatewayErrorKind.TIMEOUT))
        controller = make_controller(at_exit, preset=False)
        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)

        with pytest.raises(GatewayError):
            await controller.handle_input(InputAction.INTERACT)

        state = controller.state
        assert state.error == "slow"
        assert state.dm_message == "The path ahead dissolves into mist. Try again."
        assert state.current_coords == Position(x=0, y=0)
        assert state.transition is not None
        assert "1,0" not in state.zones
        assert not controller.session.is_generating("1,0")

    @pytest.mark.asyncio
    async def test_stale_zone_discarded(self, at_exit, make_controller, gateway) -> None:
        """A zone arriving after the game ended is not entered."""
        controller = make_controller(at_exit, preset=False)
        await controller.handle_input(InputAction.MOVE, Direction.RIGHT)
        real_populate = gateway.populate_zone

        async def end_mid_request(request):
            controller.session.apply(actions.end_game)
            return await real_populate(request)

        gateway.populate_zone = end_mid_request

        events = await controller.handle_input(InputAction.INTERACT)

        assert events == []
        assert controller.state.status == GameStatus.WORLD_CREATION
        assert controller.state.zones == {}


class TestWarpToBoss:
    """Tests for the debug warp."""

    @pytest.mark.asyncio
    async def test_warp(self, plaza_state, make_controller) -> None:
        """The party lands in the final-boss zone, even with quests open."""
        controller = make_controller(plaza_state)

        await controller.warp_to_boss()
        assert controller.state.current_coords == MANOR

        events = await controller.warp_to_boss()
        assert _codes(events) == [RejectionCode.INVALID_STATE]

    @pytest.mark.asyncio
    async def test_warp_before_start(self, gateway) -> None:
        controller = InteractionController(GameSession(), gateway)
        events = await controller.warp_to_boss()
        assert _codes(events) == [RejectionCode.INVALID_STATE]


class TestTimers:
    """Tests for the wander and key-repeat ticks."""

    def test_wander_tick(self, plaza_state, make_controller) -> None:
        """Sure-fire ticks move NPCs around the plaza."""
        controller = make_controller(plaza_state)
        before = [n.position for n in controller.state.current_zone.npcs]

        events = []
        for _ in range(10):
            events += controller.wander_tick(chance=1.0)

        assert {e.type for e in events} == {EventType.NPC_MOVED}
        assert [n.position for n in controller.state.current_zone.npcs] != before

    @pytest.mark.asyncio
    async def test_held_key_repeats_until_released(self, plaza_state, make_controller) -> None:
        """Holding a direction keeps stepping; releasing stops it."""
        controller = make_controller(plaza_state)

        controller.press_direction(Direction.UP, interval=0.01)
        assert controller.state.active_player.position == Position(x=1, y=8)

        await asyncio.sleep(0.1)
        controller.release_direction()
        stopped_at = controller.state.active_player.position
        assert stopped_at.y < 8

        await asyncio.sleep(0.05)
        assert controller.state.active_player.position == stopped_at

    @pytest.mark.asyncio
    async def test_wandering_task(self, plaza_state, make_controller) -> None:
        """The background wander task can be started and stopped."""
        controller = make_controller(plaza_state)

        controller.start_wandering(interval=0.01)
        await asyncio.sleep(0.05)
        controller.close()
        version = controller.session.version

        await asyncio.sleep(0.05)
        assert controller.session.version == version
