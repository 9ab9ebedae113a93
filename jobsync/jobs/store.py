"""Process-wide job store: holds the current state and notifies subscribers."""

import logging
from typing import Callable, List, Optional

from jobsync.jobs.actions import Action
from jobsync.jobs.models import StoreState
from jobsync.jobs.reducer import reduce

logger = logging.getLogger(__name__)

# fn(previous_state, current_state)
StoreListener = Callable[[StoreState, StoreState], None]


class JobStore:
    """Canonical job state. Only ``dispatch`` changes it.

    Dispatch is synchronous: the reducer runs and all subscribers are told
    about the transition before ``dispatch`` returns, so producers on the
    event loop can never interleave inside one update.
    """

    def __init__(self, state: Optional[StoreState] = None):
        self._state = state or StoreState()
        self._listeners: List[StoreListener] = []

    def snapshot(self) -> StoreState:
        return self._state

    def dispatch(self, action: Action) -> StoreState:
        previous = self._state
        self._state = reduce(previous, action)
        logger.debug("Applied %s", type(action).__name__)
        for listener in list(self._listeners):
            try:
                listener(previous, self._state)
            except Exception:
                logger.exception("Store listener %r failed on %s", listener, type(action).__name__)
        return self._state

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


# Global instance
job_store = JobStore()
