"""
Validators for gameplay input.

This package contains validation logic for player and NPC steps.
"""

from tiledm.engine.validators.movement import MovementValidator, can_npc_step

__all__ = ["MovementValidator", "can_npc_step"]
