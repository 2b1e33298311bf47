"""
Content Gateway - the only wire boundary of the game.

Turns structured requests into prompts, sends them through the LiteLLM
client and validates the JSON that comes back against the response
schemas. Any parse or schema problem raises a GatewayError; positions in
otherwise valid responses are left for the zone assembly pipeline to
repair.
"""

import logging

from pydantic import BaseModel, ValidationError

from tiledm.config import WORLD_GRID_SIZE, ZONE_SIZE
from tiledm.llm.client import GatewayError, GatewayErrorKind, get_completion, parse_json_response
from tiledm.llm.prompt_loader import PromptLoader, get_loader
from tiledm.llm.schemas import (
    DialogueContext,
    PopulationRequest,
    WorldResponse,
    ZoneLayoutResponse,
    ZonePopulationResponse,
    render_tile_map,
)
from tiledm.models.game import ChatMessage

logger = logging.getLogger(__name__)


def validate_response(model: type[BaseModel], data: dict, what: str):
    """Validate parsed JSON against a response schema.

    Raises:
        GatewayError: SCHEMA kind on any structural violation
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"{what} response failed schema validation: {e.error_count()} error(s)")
        raise GatewayError(
            f"The AI returned an invalid {what}. Please try again. ({e.errors()[0]['msg']})",
            kind=GatewayErrorKind.SCHEMA,
        ) from e


def _clean_line(text: str) -> str:
    """Strip quotes and markdown emphasis the model likes to add"""
    return text.strip().replace('"', "").replace("*", "").strip()


class ContentGateway:
    """Generative content backed by the configured LLM provider.

    Args:
        model: Optional LiteLLM model string override
        loader: Prompt loader (defaults to the package prompts)
    """

    def __init__(self, model: str | None = None, loader: PromptLoader | None = None):
        self.model = model
        self.loader = loader or get_loader()

    async def _json_request(self, prompt: str, max_tokens: int) -> dict:
        response = await get_completion(
            [{"role": "user", "content": prompt}],
            model=self.model,
            temperature=0.9,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
        )
        return parse_json_response(response)

    async def generate_world(self, prompt: str, grid_size: int = WORLD_GRID_SIZE) -> WorldResponse:
        """Generate world facts and the coarse world map"""
        logger.info(f"Generating world ({grid_size}x{grid_size})")
        logger.debug(f"User prompt: {prompt[:100]}..." if len(prompt) > 100 else f"User prompt: {prompt}")

        text = self.loader.render("world_builder", "world_prompt.txt", prompt=prompt, grid_size=grid_size)
        data = await self._json_request(text, max_tokens=8192)
        world = validate_response(WorldResponse, data, "world")

        if len(world.world_map) != grid_size:
            raise GatewayError(
                f"The AI returned a {len(world.world_map)}x{len(world.world_map)} world map, "
                f"expected {grid_size}x{grid_size}. Please try again.",
                kind=GatewayErrorKind.SCHEMA,
            )

        logger.info(f"World generated: '{world.world_name}'")
        return world

    async def generate_zone_layout(
        self,
        zone_name: str,
        terrain: str,
        description: str = "",
        size: int = ZONE_SIZE,
    ) -> ZoneLayoutResponse:
        """Generate the tile grid for a zone"""
        logger.info(f"Generating layout for zone '{zone_name}' ({terrain})")

        text = self.loader.render(
            "zone_builder",
            "layout_prompt.txt",
            zone_name=zone_name,
            terrain=terrain,
            description=description or "(no description)",
            size=size,
        )
        data = await self._json_request(text, max_tokens=8192)
        layout = validate_response(ZoneLayoutResponse, data, "zone layout")

        height = len(layout.tile_map)
        width = len(layout.tile_map[0])
        if (width, height) != (size, size):
            raise GatewayError(
                f"The AI returned a {width}x{height} zone layout, expected {size}x{size}. Please try again.",
                kind=GatewayErrorKind.SCHEMA,
            )
        return layout

    async def populate_zone(self, request: PopulationRequest) -> ZonePopulationResponse:
        """Generate NPCs, quests and suggested portal/spawn positions"""
        logger.info(f"Populating zone '{request.zone_name}'")

        if request.is_starting_zone:
            situation = (
                "This is where the adventure begins. Also suggest two adjacent walkable "
                "'initialSpawnPoints' for the two players."
            )
        else:
            situation = f"The players arrive from the previous zone: {request.previous_zone_description or 'unknown lands'}."
        if request.came_from_coords is not None:
            situation += f" They enter from world coordinate ({request.came_from_coords.x},{request.came_from_coords.y})."
        if request.has_next_zone and request.next_zone_coords is not None:
            situation += (
                f" The way onward leads towards world coordinate "
                f"({request.next_zone_coords.x},{request.next_zone_coords.y}); suggest an 'exitPosition' on that edge."
            )

        boss_note = ""
        if request.is_final_boss_zone:
            boss_note = "This is the final zone of the story. One NPC must be the story's final antagonist."

        text = self.loader.render(
            "zone_builder",
            "population_prompt.txt",
            world_name=request.world_name,
            storyline=request.storyline,
            zone_name=request.zone_name,
            terrain=request.terrain,
            zone_description=request.zone_description or "(no description)",
            situation=situation,
            tile_map=render_tile_map(request.tile_map),
            boss_note=boss_note,
        )
        data = await self._json_request(text, max_tokens=8192)
        return validate_response(ZonePopulationResponse, data, "zone population")

    def _persona(self, context: DialogueContext) -> str:
        quest_info = ""
        if context.quest is not None:
            quest_info = self.loader.render(
                "dialogue",
                "quest_info.txt",
                title=context.quest.title,
                description=context.quest.description,
                status=context.quest.status.value,
                item_name=context.quest.objective.item_name,
            )
        return self.loader.render(
            "dialogue",
            "persona_prompt.txt",
            world_name=context.world_name,
            storyline=context.storyline,
            zone_terrain=context.zone_terrain,
            zone_name=context.zone_name,
            zone_description=context.zone_description,
            other_npcs=", ".join(context.other_npc_names) or "no one else",
            npc_name=context.npc.name,
            npc_role=context.npc.role,
            npc_description=context.npc.description,
            npc_personality=context.npc.personality,
            player_name=context.player.name,
            player_class=context.player.class_type.value,
            quest_info=quest_info,
        )

    async def generate_dialogue(self, context: DialogueContext) -> str:
        """One fresh in-character line for the Talk option"""
        messages = [
            {"role": "system", "content": self._persona(context)},
            {"role": "user", "content": self.loader.get_prompt("dialogue", "talk_prompt.txt")},
        ]
        response = await get_completion(messages, model=self.model, temperature=0.9, max_tokens=256)
        return _clean_line(response)

    async def chat_reply(
        self,
        context: DialogueContext,
        history: list[ChatMessage],
        message: str,
    ) -> str:
        """Reply to a player chat message, given the conversation so far"""
        messages = [{"role": "system", "content": self._persona(context)}]
        for entry in history:
            messages.append(
                {"role": "user" if entry.author == "player" else "assistant", "content": entry.text}
            )
        messages.append({"role": "user", "content": message})

        response = await get_completion(messages, model=self.model, temperature=0.8, max_tokens=512)
        return response.strip()
