"""LLM integration components.

- `client.py`: LiteLLM client wrapper with retry and the gateway error taxonomy
- `gateway.py`: ContentGateway, the structured world/zone/dialogue requests
- `schemas.py`: Wire models for gateway responses
- `prompt_loader.py`: Prompt template loading utility
"""

from tiledm.llm.client import GatewayError, GatewayErrorKind, get_completion, parse_json_response
from tiledm.llm.gateway import ContentGateway
from tiledm.llm.prompt_loader import get_loader

__all__ = [
    "GatewayError",
    "GatewayErrorKind",
    "get_completion",
    "parse_json_response",
    "ContentGateway",
    "get_loader",
]
