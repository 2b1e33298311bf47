"""tiledm - AI dungeon master for a two-player cooperative tile adventure"""

__version__ = "0.1.0"
