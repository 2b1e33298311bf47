"""
Game session - owns the current state of one local two-player game.

All changes go through ``apply``: a pure transition from
``tiledm.engine.actions`` computes the next state and the session commits
it, bumping the version. Async work remembers the version it started
from and commits with ``apply_if_current``, so a slow gateway response
can never overwrite a state that moved on (a new game, for instance).
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from tiledm.engine.actions import ActionResult
from tiledm.engine.errors import StaleStateError
from tiledm.models.event import Event
from tiledm.models.game import GameState

logger = logging.getLogger(__name__)


class GameSession:
    """Manages game state for a single session"""

    def __init__(self, state: GameState | None = None, session_id: str | None = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.created_at = datetime.now()
        self._state = state or GameState()
        self._generating: set[str] = set()

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def version(self) -> int:
        return self._state.version

    def commit(self, result: ActionResult) -> list[Event]:
        """Install the result's state as the current one.

        A result carrying the current state object unchanged is not a
        change, and the version stays where it is.
        """
        if result.state is not self._state:
            self._state = result.state.model_copy(update={"version": self._state.version + 1})
        return result.events

    def apply(self, transition: Callable[..., ActionResult], *args, **kwargs) -> list[Event]:
        """Run a transition against the current state and commit it"""
        return self.commit(transition(self._state, *args, **kwargs))

    def apply_if_current(
        self,
        expected_version: int,
        transition: Callable[..., ActionResult],
        *args,
        **kwargs,
    ) -> list[Event]:
        """Like ``apply``, but only if nothing was committed since ``expected_version``.

        Raises:
            StaleStateError: If the state moved on in the meantime
        """
        if self._state.version != expected_version:
            logger.warning(
                f"Discarding stale result for session {self.session_id}: "
                f"expected version {expected_version}, now {self._state.version}"
            )
            raise StaleStateError(expected_version, self._state.version)
        return self.apply(transition, *args, **kwargs)

    # Zone generation bookkeeping: one request in flight per coordinate

    def begin_generation(self, key: str) -> bool:
        """Claim the coordinate ``key``. False if a request is already in flight."""
        if key in self._generating:
            return False
        self._generating.add(key)
        return True

    def end_generation(self, key: str) -> None:
        self._generating.discard(key)

    def is_generating(self, key: str) -> bool:
        return key in self._generating
