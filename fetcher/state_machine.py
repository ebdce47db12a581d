"""State machine for a single dispatch."""

from enum import Enum

import structlog


logger = structlog.get_logger()


class DispatchState(str, Enum):
    """State of a dispatch.

    States represent the lifecycle of one logical fetch:
    - PREPARING: Applying defaults and folding data into the request
    - ATTEMPTING: Transport call in progress
    - WAITING_BACKOFF: Sleeping before the next attempt
    - SUCCEEDED: Resolved with a response
    - FAILED: Rejected with an error
    """

    PREPARING = "PREPARING"
    ATTEMPTING = "ATTEMPTING"
    WAITING_BACKOFF = "WAITING_BACKOFF"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# Valid state transitions
_VALID_TRANSITIONS: dict[DispatchState, set[DispatchState]] = {
    DispatchState.PREPARING: {DispatchState.ATTEMPTING, DispatchState.FAILED},
    DispatchState.ATTEMPTING: {
        DispatchState.SUCCEEDED,
        DispatchState.WAITING_BACKOFF,
        DispatchState.FAILED,
    },
    DispatchState.WAITING_BACKOFF: {DispatchState.ATTEMPTING},
    DispatchState.SUCCEEDED: set(),  # Terminal state
    DispatchState.FAILED: set(),  # Terminal state
}


class DispatchStateTransitionError(Exception):
    """Raised when an illegal state transition is attempted."""

    def __init__(
        self,
        dispatch_id: str,
        from_state: DispatchState,
        to_state: DispatchState,
    ) -> None:
        """Initialize the transition error.

        Args:
            dispatch_id: Identifier of the dispatch.
            from_state: Current state.
            to_state: Attempted target state.
        """
        self.dispatch_id = dispatch_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal state transition for dispatch '{dispatch_id}': "
            f"{from_state.value} -> {to_state.value}"
        )


class DispatchStateMachine:
    """Manages state transitions for a dispatch.

    Enforces valid transitions and tracks the attempt counter, which only
    advances when a backoff wait hands control back to ATTEMPTING.
    """

    def __init__(self, dispatch_id: str) -> None:
        """Initialize the state machine.

        Args:
            dispatch_id: Identifier for the dispatch.
        """
        self._dispatch_id = dispatch_id
        self._state = DispatchState.PREPARING
        self._attempt = -1
        self._log = logger.bind(component="dispatch", dispatch_id=dispatch_id)

    @property
    def dispatch_id(self) -> str:
        """Get the dispatch identifier."""
        return self._dispatch_id

    @property
    def state(self) -> DispatchState:
        """Get the current state."""
        return self._state

    @property
    def attempt(self) -> int:
        """Index of the current attempt (0-based), -1 before the first."""
        return self._attempt

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (DispatchState.SUCCEEDED, DispatchState.FAILED)

    def can_transition_to(self, target: DispatchState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: DispatchState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            DispatchStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise DispatchStateTransitionError(
                dispatch_id=self._dispatch_id,
                from_state=self._state,
                to_state=target,
            )

        old_state = self._state
        self._state = target
        if target == DispatchState.ATTEMPTING:
            self._attempt += 1

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
            attempt=self._attempt,
        )

    def to_attempting(self) -> None:
        """Transition to ATTEMPTING, advancing the attempt counter."""
        self.transition_to(DispatchState.ATTEMPTING)

    def to_waiting_backoff(self) -> None:
        """Transition to WAITING_BACKOFF state."""
        self.transition_to(DispatchState.WAITING_BACKOFF)

    def to_succeeded(self) -> None:
        """Transition to SUCCEEDED state."""
        self.transition_to(DispatchState.SUCCEEDED)

    def to_failed(self) -> None:
        """Transition to FAILED state."""
        self.transition_to(DispatchState.FAILED)
