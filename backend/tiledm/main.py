"""
tiledm Backend - FastAPI Application Entry Point
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tiledm import __version__
from tiledm.api import game
from tiledm.config import get_log_level

logging.basicConfig(
    level=get_log_level(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="tiledm",
    description="AI dungeon master for a two-player cooperative tile adventure",
    version=__version__,
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(game.router, prefix="/api/game", tags=["game"])


@app.get("/")
async def root():
    """Health check endpoint"""
    return {"status": "ok", "name": "tiledm", "version": __version__}


@app.get("/api/worlds")
async def list_worlds():
    """List available offline worlds"""
    from tiledm.engine.world import WorldLoader

    loader = WorldLoader()
    return {"worlds": loader.list_worlds()}
