"""
Runtime configuration - environment-driven settings and game tunables
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent.parent

# Zone / world geometry
ZONE_SIZE = 20
WORLD_GRID_SIZE = 6
MIN_REGION_SIZE = 20

# Player limits
INVENTORY_CAPACITY = 16
MAX_CHAT_MESSAGES = 5

# Real-time ticks (seconds)
NPC_WANDER_INTERVAL = 3.0
NPC_WANDER_CHANCE = 0.3
KEY_REPEAT_INTERVAL = 0.15

# Gateway retry configuration
MAX_RETRIES = 4
INITIAL_RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 16.0

# Whole-zone regeneration limit for unplayable or malformed zones
ZONE_GENERATION_ATTEMPTS = 2


def get_provider() -> str:
    """Get configured LLM provider"""
    return os.getenv("LLM_PROVIDER", "gemini")


def get_model() -> str:
    """Get configured model name"""
    return os.getenv("LLM_MODEL", "gemini-2.5-flash")


def get_model_string() -> str:
    """Get the full model string for LiteLLM"""
    provider = get_provider()
    model = get_model()

    # LiteLLM uses prefixed model names for some providers
    if provider == "gemini":
        return f"gemini/{model}"
    elif provider == "anthropic":
        return f"anthropic/{model}"
    elif provider == "ollama":
        return f"ollama/{model}"
    else:
        # OpenAI doesn't need a prefix
        return model


def get_log_level() -> str:
    """Get configured log level name"""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_worlds_dir() -> Path:
    """Get the directory holding hand-authored YAML worlds"""
    override = os.getenv("TILEDM_WORLDS_DIR")
    if override:
        return Path(override)
    return PROJECT_ROOT / "worlds"
