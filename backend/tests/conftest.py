"""
Shared pytest fixtures for tiledm backend tests.

This module provides:
- rng: seeded random source, so placement and paths are reproducible
- chroma_preset: the hand-authored Chroma Dominion world
- plaza_state: a PLAYING GameState in Palette Plaza with two players
- fake_gateway: canned content gateway
- Custom markers for test categorization
"""

from __future__ import annotations

import random
import sys
from pathlib import Path

import pytest

# Add backend to path for imports
backend_path = Path(__file__).parent.parent
if str(backend_path) not in sys.path:
    sys.path.insert(0, str(backend_path))

from tiledm.engine import actions  # noqa: E402
from tiledm.engine.world import WorldLoader, WorldPreset  # noqa: E402
from tiledm.engine.zone_builder import BuiltZone  # noqa: E402
from tiledm.models.game import GameState  # noqa: E402
from tiledm.models.player import ClassType  # noqa: E402
from tiledm.models.world import Position  # noqa: E402

from tests.helpers import build_preset_zone  # noqa: E402

WORLDS_DIR = backend_path.parent / "worlds"


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line(
        "markers", "e2e: marks tests as end-to-end tests requiring real LLM"
    )


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(42)


# =============================================================================
# World Fixtures
# =============================================================================


@pytest.fixture
def world_loader() -> WorldLoader:
    return WorldLoader(WORLDS_DIR)


@pytest.fixture
def chroma_preset(world_loader: WorldLoader) -> WorldPreset:
    """The Chroma Dominion: Palette Plaza (0,0) -> Monochrome Manor (1,0)."""
    return world_loader.load_world("chroma-dominion")


@pytest.fixture
def plaza(chroma_preset: WorldPreset, rng: random.Random) -> BuiltZone:
    """Assembled Palette Plaza."""
    return build_preset_zone(chroma_preset, Position(x=0, y=0), rng)


@pytest.fixture
def manor(chroma_preset: WorldPreset, rng: random.Random) -> BuiltZone:
    """Assembled Monochrome Manor (final-boss zone, no quests)."""
    return build_preset_zone(chroma_preset, Position(x=1, y=0), rng)


# =============================================================================
# Game State Fixtures
# =============================================================================


@pytest.fixture
def plaza_state(chroma_preset: WorldPreset, plaza: BuiltZone) -> GameState:
    """PLAYING state in Palette Plaza.

    Ayla the Warrior stands at (1,9) and is active; Bram the Wizard
    stands at (2,9).
    """
    state = actions.begin_world(GameState(), chroma_preset.world, plaza).state
    return actions.create_players(state, [("Ayla", ClassType.WARRIOR), ("Bram", ClassType.WIZARD)]).state


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def fake_gateway():
    """Canned content gateway."""
    from tests.mocks.llm import FakeGateway

    return FakeGateway()


@pytest.fixture
def mock_llm_with_responses() -> callable:
    """Factory fixture to create mock LLM completions with custom responses.

    Usage:
        def test_something(mock_llm_with_responses):
            llm = mock_llm_with_responses({
                "tile grid": '{"zoneName": "Glade", "tileMap": [["grass"]]}',
                "default": "Hello.",
            })
    """
    from tests.mocks.llm import MockLLMClient

    def _factory(responses: dict[str, str]) -> MockLLMClient:
        return MockLLMClient(responses=responses)

    return _factory
