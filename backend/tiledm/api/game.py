"""
Game API endpoints - Drive a two-player session over HTTP
"""

import logging
import random
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from tiledm.engine.controller import InteractionController
from tiledm.engine.errors import GenerationError
from tiledm.engine.protocols import ContentGatewayProtocol
from tiledm.engine.state import GameSession
from tiledm.llm.client import GatewayError
from tiledm.llm.gateway import ContentGateway
from tiledm.models.event import Event
from tiledm.models.game import GameState, InputAction
from tiledm.models.player import ClassType, Direction

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory game sessions (no persistence)
game_sessions: dict[str, InteractionController] = {}


def get_gateway() -> ContentGatewayProtocol:
    """Gateway used for new sessions (overridden in tests)"""
    return ContentGateway()


class NewGameRequest(BaseModel):
    """Request to start a new game, from a prompt or an offline world"""

    prompt: str | None = None
    world_id: str | None = None
    seed: int | None = None  # Fixed seed for reproducible worlds


class CharacterRequest(BaseModel):
    name: str
    class_type: ClassType


class CharactersRequest(BaseModel):
    characters: list[CharacterRequest] = Field(min_length=2, max_length=2)


class InputRequest(BaseModel):
    action: InputAction
    direction: Direction | None = None


class ChatRequest(BaseModel):
    message: str


class GameResponse(BaseModel):
    """Session state after a request, plus what happened"""

    session_id: str
    state: GameState
    events: list[dict[str, Any]] = Field(default_factory=list)


def _respond(controller: InteractionController, events: list[Event] | None = None) -> GameResponse:
    return GameResponse(
        session_id=controller.session.session_id,
        state=controller.state,
        events=[e.model_dump(mode="json") for e in events or []],
    )


def _get_controller(session_id: str) -> InteractionController:
    controller = game_sessions.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Game session not found")
    return controller


@router.post("/new", response_model=GameResponse)
async def new_game(
    request: NewGameRequest,
    gateway: ContentGatewayProtocol = Depends(get_gateway),
):
    """Start a new game session"""
    if not request.prompt and not request.world_id:
        raise HTTPException(status_code=400, detail="Either a prompt or a world_id is required")

    rng = random.Random(request.seed) if request.seed is not None else random.Random()
    controller = InteractionController(GameSession(), gateway, rng)

    try:
        if request.world_id:
            events = await controller.load_world(request.world_id)
        else:
            events = await controller.new_world(request.prompt)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"World '{request.world_id}' not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (GatewayError, GenerationError) as e:
        raise HTTPException(status_code=502, detail=str(e))

    game_sessions[controller.session.session_id] = controller
    logger.info(f"Started session {controller.session.session_id}")
    return _respond(controller, events)


@router.get("/{session_id}", response_model=GameResponse)
async def get_state(session_id: str):
    """Get current game state"""
    return _respond(_get_controller(session_id))


@router.post("/{session_id}/characters", response_model=GameResponse)
async def create_characters(session_id: str, request: CharactersRequest):
    """Create both players and start playing"""
    controller = _get_controller(session_id)
    try:
        events = controller.create_characters([(c.name, c.class_type) for c in request.characters])
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _respond(controller, events)


@router.post("/{session_id}/input", response_model=GameResponse)
async def handle_input(session_id: str, request: InputRequest):
    """Process one player input (move, interact, switch, menus)"""
    controller = _get_controller(session_id)
    try:
        events = await controller.handle_input(request.action, request.direction)
    except (GatewayError, GenerationError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _respond(controller, events)


@router.post("/{session_id}/chat", response_model=GameResponse)
async def send_chat(session_id: str, request: ChatRequest):
    """Send a chat message to the NPC in the open chat"""
    controller = _get_controller(session_id)
    try:
        events = await controller.send_chat(request.message)
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _respond(controller, events)


@router.post("/{session_id}/chat/new", response_model=GameResponse)
async def new_conversation(session_id: str):
    controller = _get_controller(session_id)
    return _respond(controller, controller.new_conversation())


@router.post("/{session_id}/tick", response_model=GameResponse)
async def wander_tick(session_id: str):
    """Advance the NPC wander timer by one tick"""
    controller = _get_controller(session_id)
    return _respond(controller, controller.wander_tick())


@router.post("/{session_id}/dismiss-error", response_model=GameResponse)
async def dismiss_error(session_id: str):
    controller = _get_controller(session_id)
    return _respond(controller, controller.dismiss_error())


@router.post("/{session_id}/warp-to-boss", response_model=GameResponse)
async def warp_to_boss(session_id: str):
    """Debug: jump straight to the final-boss zone"""
    controller = _get_controller(session_id)
    try:
        events = await controller.warp_to_boss()
    except (GatewayError, GenerationError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _respond(controller, events)


@router.post("/{session_id}/end")
async def end_game(session_id: str):
    """End the game and forget the session"""
    controller = _get_controller(session_id)
    controller.end_game()
    controller.close()
    del game_sessions[session_id]
    return {"status": "ended", "session_id": session_id}
