"""
Protocol definitions for the engine's collaborators.

The engine never talks to the LLM provider directly. World and zone
generation, and NPC dialogue, go through a ContentGateway so tests can
swap in canned responses.

Component Flow:
    ContentGateway -> layout / population -> ZoneBuilder -> Zone
                                                              |
                                                              v
    player input -> InteractionController -> actions -> GameSession
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tiledm.llm.schemas import (
        DialogueContext,
        PopulationRequest,
        WorldResponse,
        ZoneLayoutResponse,
        ZonePopulationResponse,
    )
    from tiledm.models.game import ChatMessage


@runtime_checkable
class ContentGatewayProtocol(Protocol):
    """Protocol for the generative content backend.

    Every method either returns a schema-valid response or raises
    ``GatewayError``. Implementations never return partial data.

    Example implementations:
        - ContentGateway: LiteLLM-backed generation
        - FakeGateway (tests): canned pydantic responses
    """

    async def generate_world(self, prompt: str, grid_size: int = ...) -> "WorldResponse":
        """Generate world name, storyline and the coarse world map."""
        ...

    async def generate_zone_layout(
        self,
        zone_name: str,
        terrain: str,
        description: str = ...,
        size: int = ...,
    ) -> "ZoneLayoutResponse":
        """Generate a zone's tile grid."""
        ...

    async def populate_zone(self, request: "PopulationRequest") -> "ZonePopulationResponse":
        """Generate NPCs, quests and suggested positions for a zone."""
        ...

    async def generate_dialogue(self, context: "DialogueContext") -> str:
        """Generate one in-character line for an NPC."""
        ...

    async def chat_reply(
        self,
        context: "DialogueContext",
        history: list["ChatMessage"],
        message: str,
    ) -> str:
        """Reply to a chat message in an ongoing conversation."""
        ...
