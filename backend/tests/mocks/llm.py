"""
Mock LLM collaborators for deterministic testing.

This module provides:
- MockLLMClient: stands in for ``get_completion`` and returns canned text
  based on prompt patterns, so the real ContentGateway can be exercised
  without network calls
- FakeGateway: implements the content gateway protocol directly with
  canned pydantic responses, for engine and controller tests

Example:
    >>> mock = MockLLMClient({
    ...     "tile grid": '{"zoneName": "Glade", "tileMap": [["grass"]]}',
    ...     "default": "Hello there.",
    ... })
    >>> with patch("tiledm.llm.gateway.get_completion", mock.complete):
    ...     ...
"""

from __future__ import annotations

from dataclasses import dataclass

from tiledm.llm.schemas import (
    DialogueContext,
    NPCSpec,
    PopulationRequest,
    QuestObjectiveSpec,
    QuestSpec,
    WorldMapCell,
    WorldResponse,
    ZoneLayoutResponse,
    ZonePopulationResponse,
)
from tiledm.models.game import ChatMessage
from tiledm.models.world import Position, Tile


@dataclass
class LLMCall:
    """Record of a single LLM call for test verification.

    Attributes:
        messages: The messages sent to the LLM
        response: The response returned
        matched_pattern: The pattern that matched (or "default")
    """

    messages: list[dict[str, str]]
    response: str
    matched_pattern: str

    @property
    def prompt(self) -> str:
        return "\n".join(m["content"] for m in self.messages)


class MockLLMClient:
    """Mock LLM completion function for deterministic testing.

    Matches the joined message contents against registered patterns and
    returns predetermined responses. Records all calls for assertions.

    Attributes:
        responses: Dict mapping pattern strings to response strings
        call_history: List of all calls made to this mock
    """

    def __init__(self, responses: dict[str, str] | None = None) -> None:
        """Initialize with optional response mappings.

        Args:
            responses: Dict mapping pattern strings to response strings.
                       Patterns are matched with 'in' operator (substring).
                       Include a "default" key for fallback responses.
        """
        self.responses: dict[str, str] = responses or {}
        self.call_history: list[LLMCall] = []

    async def complete(self, messages: list[dict[str, str]], **kwargs) -> str:
        """Drop-in replacement for ``tiledm.llm.client.get_completion``"""
        prompt = "\n".join(m["content"] for m in messages)
        response, pattern = self._find_response(prompt)
        self.call_history.append(LLMCall(messages=messages, response=response, matched_pattern=pattern))
        return response

    def _find_response(self, prompt: str) -> tuple[str, str]:
        prompt_lower = prompt.lower()

        for pattern, response in self.responses.items():
            if pattern == "default":
                continue
            if pattern.lower() in prompt_lower:
                return response, pattern

        if "default" in self.responses:
            return self.responses["default"], "default"

        return "{}", "none"

    def get_last_call(self) -> LLMCall | None:
        """Get the most recent call, if any."""
        return self.call_history[-1] if self.call_history else None

    def assert_called(self, times: int | None = None) -> None:
        """Assert the mock was called (exactly ``times`` times if given)."""
        if times is not None:
            assert (
                len(self.call_history) == times
            ), f"Expected {times} calls, got {len(self.call_history)}"
        else:
            assert len(self.call_history) > 0, "Expected at least one call"


# =============================================================================
# Canned gateway responses
# =============================================================================


def make_world_response(grid_size: int = 6, name: str = "Test Realm") -> WorldResponse:
    """Square world map with distinct cell names"""
    return WorldResponse(
        world_name=name,
        main_storyline="A dull grey fog is swallowing the land.",
        world_map=[
            [
                WorldMapCell(name=f"Zone {x}-{y}", terrain="meadow", description=f"Meadow at {x},{y}.")
                for x in range(grid_size)
            ]
            for y in range(grid_size)
        ],
    )


def make_layout(size: int = 20, name: str = "Test Meadow", fill: Tile = Tile.GRASS) -> ZoneLayoutResponse:
    """Layout filled with a single tile type"""
    return ZoneLayoutResponse(zone_name=name, tile_map=[[fill] * size for _ in range(size)])


def make_population(
    quest_id: str = "quest_lost_lantern",
    item_id: str = "item_lantern",
    with_quest: bool = True,
) -> ZonePopulationResponse:
    """One quest giver and one bystander, with spawn points at the top left"""
    quest = None
    if with_quest:
        quest = QuestSpec(
            id=quest_id,
            title="The Lost Lantern",
            description="Find my lantern, it rolled away in the fog.",
            completion_dialogue="My lantern! Thank you.",
            xp_reward=60,
            objective=QuestObjectiveSpec(
                item_id=item_id,
                item_name="Brass Lantern",
                target_position=Position(x=10, y=10),
            ),
        )
    return ZonePopulationResponse(
        npcs=[
            NPCSpec(
                name="Old Tam",
                role="Lamplighter",
                initial_dialogue="The fog took everything.",
                position=Position(x=5, y=5),
                quest=quest,
            ),
            NPCSpec(name="Wren", role="Goatherd", position=Position(x=8, y=3)),
        ],
        initial_spawn_points=[Position(x=1, y=1), Position(x=2, y=1)],
    )


class FakeGateway:
    """Content gateway returning canned responses.

    Failures can be queued per method name; each queued exception is
    raised once, in order, before the canned response is used again.

    Example:
        >>> gateway = FakeGateway()
        >>> gateway.fail("generate_zone_layout", GatewayError("bad", GatewayErrorKind.PARSE))
    """

    def __init__(
        self,
        world: WorldResponse | None = None,
        layouts: list[ZoneLayoutResponse] | None = None,
        population: ZonePopulationResponse | None = None,
        dialogue: str = "The fog thickens at dusk.",
        chat: str = "Aye, I remember that.",
    ) -> None:
        self.world = world or make_world_response()
        self.layouts = list(layouts) if layouts else [make_layout()]
        self.population = population or make_population()
        self.dialogue = dialogue
        self.chat = chat
        self.calls: list[str] = []
        self.population_requests: list[PopulationRequest] = []
        self.chat_histories: list[list[ChatMessage]] = []
        self._failures: dict[str, list[Exception]] = {}

    def fail(self, method: str, error: Exception, times: int = 1) -> None:
        self._failures.setdefault(method, []).extend([error] * times)

    def _record(self, method: str) -> None:
        self.calls.append(method)
        pending = self._failures.get(method)
        if pending:
            raise pending.pop(0)

    async def generate_world(self, prompt: str, grid_size: int = 6) -> WorldResponse:
        self._record("generate_world")
        return self.world

    async def generate_zone_layout(
        self,
        zone_name: str,
        terrain: str,
        description: str = "",
        size: int = 20,
    ) -> ZoneLayoutResponse:
        self._record("generate_zone_layout")
        # Consume layouts in order; the last one repeats
        if len(self.layouts) > 1:
            return self.layouts.pop(0)
        return self.layouts[0]

    async def populate_zone(self, request: PopulationRequest) -> ZonePopulationResponse:
        self._record("populate_zone")
        self.population_requests.append(request)
        return self.population

    async def generate_dialogue(self, context: DialogueContext) -> str:
        self._record("generate_dialogue")
        return self.dialogue

    async def chat_reply(self, context: DialogueContext, history: list[ChatMessage], message: str) -> str:
        self._record("chat_reply")
        self.chat_histories.append(list(history))
        return self.chat
