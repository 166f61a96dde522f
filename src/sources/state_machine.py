"""State machine for a network source's fetch ladder."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class SourceState(str, Enum):
    """State of a source during one fetch.

    - SOURCE_PENDING: Not yet started
    - SOURCE_FETCHING: Trying the candidate endpoints
    - SOURCE_PROXYING: All endpoints exhausted, trying the relay
    - SOURCE_DONE: Live or relayed items obtained
    - SOURCE_FALLBACK: Every path failed, placeholder items served
    """

    SOURCE_PENDING = "SOURCE_PENDING"
    SOURCE_FETCHING = "SOURCE_FETCHING"
    SOURCE_PROXYING = "SOURCE_PROXYING"
    SOURCE_DONE = "SOURCE_DONE"
    SOURCE_FALLBACK = "SOURCE_FALLBACK"


_VALID_TRANSITIONS: dict[SourceState, set[SourceState]] = {
    SourceState.SOURCE_PENDING: {
        SourceState.SOURCE_FETCHING,
        SourceState.SOURCE_FALLBACK,
    },
    SourceState.SOURCE_FETCHING: {
        SourceState.SOURCE_DONE,
        SourceState.SOURCE_PROXYING,
        SourceState.SOURCE_FALLBACK,
    },
    # The relay is tried exactly once: no way back to FETCHING
    SourceState.SOURCE_PROXYING: {
        SourceState.SOURCE_DONE,
        SourceState.SOURCE_FALLBACK,
    },
    SourceState.SOURCE_DONE: set(),  # Terminal state
    SourceState.SOURCE_FALLBACK: set(),  # Terminal state
}


class SourceStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        source_id: str,
        from_state: SourceState,
        to_state: SourceState,
    ) -> None:
        """Initialize the transition error.

        Args:
            source_id: Identifier of the source.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.source_id = source_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for source '{source_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class SourceStateMachine:
    """Manages state transitions for a source during one fetch.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(
        self,
        source_id: str,
        initial_state: SourceState = SourceState.SOURCE_PENDING,
    ) -> None:
        """Initialize the state machine.

        Args:
            source_id: Identifier for the source.
            initial_state: Starting state.
        """
        self._source_id = source_id
        self._state = initial_state
        self._log = logger.bind(component="source", source_id=source_id)

    @property
    def source_id(self) -> str:
        """Get the source identifier."""
        return self._source_id

    @property
    def state(self) -> SourceState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (SourceState.SOURCE_DONE, SourceState.SOURCE_FALLBACK)

    def can_transition_to(self, target: SourceState) -> bool:
        """Check if a transition to the target state is valid."""
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: SourceState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            SourceStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise SourceStateTransitionError(
                source_id=self._source_id,
                from_state=self._state,
                to_state=target,
            )

        old_state = self._state
        self._state = target

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def to_fetching(self) -> None:
        """Transition to SOURCE_FETCHING state."""
        self.transition_to(SourceState.SOURCE_FETCHING)

    def to_proxying(self) -> None:
        """Transition to SOURCE_PROXYING state."""
        self.transition_to(SourceState.SOURCE_PROXYING)

    def to_done(self) -> None:
        """Transition to SOURCE_DONE state."""
        self.transition_to(SourceState.SOURCE_DONE)

    def to_fallback(self) -> None:
        """Transition to SOURCE_FALLBACK state."""
        self.transition_to(SourceState.SOURCE_FALLBACK)
