"""State machine for serving one feed request."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class ServingState(str, Enum):
    """State of a feed request.

    - REQUEST_RECEIVED: Cache not yet consulted
    - SERVING_CACHE: Fresh cache entry served
    - AGGREGATING: Cache missing or expired, aggregation running
    - SERVING_FRESH: Newly aggregated feed served and cached
    - SERVING_STALE_ON_ERROR: Aggregation faulted, expired entry served
    - SERVING_FALLBACK_ONLY: Aggregation faulted with no entry at all
    """

    REQUEST_RECEIVED = "REQUEST_RECEIVED"
    SERVING_CACHE = "SERVING_CACHE"
    AGGREGATING = "AGGREGATING"
    SERVING_FRESH = "SERVING_FRESH"
    SERVING_STALE_ON_ERROR = "SERVING_STALE_ON_ERROR"
    SERVING_FALLBACK_ONLY = "SERVING_FALLBACK_ONLY"


_TERMINAL_STATES = frozenset(
    {
        ServingState.SERVING_CACHE,
        ServingState.SERVING_FRESH,
        ServingState.SERVING_STALE_ON_ERROR,
        ServingState.SERVING_FALLBACK_ONLY,
    }
)

_VALID_TRANSITIONS: dict[ServingState, set[ServingState]] = {
    ServingState.REQUEST_RECEIVED: {
        ServingState.SERVING_CACHE,
        ServingState.AGGREGATING,
    },
    ServingState.AGGREGATING: {
        ServingState.SERVING_FRESH,
        ServingState.SERVING_STALE_ON_ERROR,
        ServingState.SERVING_FALLBACK_ONLY,
    },
    ServingState.SERVING_CACHE: set(),
    ServingState.SERVING_FRESH: set(),
    ServingState.SERVING_STALE_ON_ERROR: set(),
    ServingState.SERVING_FALLBACK_ONLY: set(),
}


class ServingStateTransitionError(Exception):
    """Raised when an illegal serving transition is attempted."""

    def __init__(self, from_state: ServingState, to_state: ServingState) -> None:
        """Initialize the transition error.

        Args:
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal serving transition: {from_state.value} -> {to_state.value}"
        )


class ServingStateMachine:
    """Tracks one request through the serving ladder."""

    def __init__(
        self,
        initial_state: ServingState = ServingState.REQUEST_RECEIVED,
    ) -> None:
        """Initialize the state machine.

        Args:
            initial_state: Starting state.
        """
        self._state = initial_state
        self._log = logger.bind(component="serving")

    @property
    def state(self) -> ServingState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in _TERMINAL_STATES

    def can_transition_to(self, target: ServingState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: ServingState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            ServingStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise ServingStateTransitionError(self._state, target)

        old_state = self._state
        self._state = target
        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_serving_cache(self) -> None:
        """Transition to SERVING_CACHE state."""
        self.transition_to(ServingState.SERVING_CACHE)

    def to_aggregating(self) -> None:
        """Transition to AGGREGATING state."""
        self.transition_to(ServingState.AGGREGATING)

    def to_serving_fresh(self) -> None:
        """Transition to SERVING_FRESH state."""
        self.transition_to(ServingState.SERVING_FRESH)

    def to_serving_stale(self) -> None:
        """Transition to SERVING_STALE_ON_ERROR state."""
        self.transition_to(ServingState.SERVING_STALE_ON_ERROR)

    def to_fallback_only(self) -> None:
        """Transition to SERVING_FALLBACK_ONLY state."""
        self.transition_to(ServingState.SERVING_FALLBACK_ONLY)
