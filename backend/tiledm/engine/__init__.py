"""Game engine components.

- Pure transitions over GameState: `actions.py`
- Session ownership and versioned commits: `state.py`
- Input routing, busy handling and timers: `controller.py`
- World/zone generation flow: `generation.py`, `zone_builder.py`
- Map geometry: `connectivity.py`, `placement.py`, `portals.py`, `world_path.py`

Import directly from submodules to avoid circular imports:
    from tiledm.engine.controller import InteractionController
    from tiledm.engine.state import GameSession
"""
