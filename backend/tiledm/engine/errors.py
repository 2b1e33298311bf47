"""
Engine error taxonomy.

Generation failures abort the current generation step without committing
anything; position problems are repaired silently and never reach here
unless a whole region is exhausted.
"""


class GenerationError(Exception):
    """A generation step produced something unusable"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnplayableMapError(GenerationError):
    """The largest walkable region of a zone is below the playable minimum"""

    def __init__(self, region_size: int, minimum: int):
        super().__init__(
            f"Generated zone is unplayable: largest walkable region has "
            f"{region_size} tiles, at least {minimum} required."
        )
        self.region_size = region_size
        self.minimum = minimum


class PlacementError(GenerationError):
    """No free walkable tile is left for an entity"""


class QuestTransitionError(ValueError):
    """A quest was asked to move anywhere but forward"""


class StaleStateError(Exception):
    """An async result arrived for a state version that is no longer current"""

    def __init__(self, expected_version: int, current_version: int):
        super().__init__(
            f"State changed while waiting (expected version {expected_version}, now {current_version})"
        )
        self.expected_version = expected_version
        self.current_version = current_version
