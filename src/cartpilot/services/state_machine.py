"""Session state machine logic for managing valid session status transitions."""
from typing import Set, Dict
from cartpilot.core.enums import SessionStatus
from cartpilot.core.exceptions import InvalidStateTransitionError
from cartpilot.schemas.session import CoordinatorSession


class SessionStateMachine:
    """
    Defines valid status transitions for coordinator sessions.
    A session only moves forward or jumps to CANCELLED.

    State Diagram:
        INITIALIZING → AUTHENTICATING → LOADING_CART → GENERATING_REVIEW → REVIEW_READY → COMPLETED
             CANCELLED (from any non-terminal)
    """

    TRANSITIONS: Dict[SessionStatus, Set[SessionStatus]] = {
        SessionStatus.INITIALIZING: {SessionStatus.AUTHENTICATING, SessionStatus.CANCELLED},
        SessionStatus.AUTHENTICATING: {SessionStatus.LOADING_CART, SessionStatus.CANCELLED},
        SessionStatus.LOADING_CART: {SessionStatus.GENERATING_REVIEW, SessionStatus.CANCELLED},
        SessionStatus.GENERATING_REVIEW: {SessionStatus.REVIEW_READY, SessionStatus.CANCELLED},
        # Approval happens outside the core
        SessionStatus.REVIEW_READY: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
        SessionStatus.COMPLETED: set(),  # Terminal state
        SessionStatus.CANCELLED: set(),  # Terminal state
    }

    TERMINAL_STATES = {SessionStatus.COMPLETED, SessionStatus.CANCELLED}

    @classmethod
    def can_transition(cls, from_state: SessionStatus, to_state: SessionStatus) -> bool:
        """
        Check if transition from from_state to to_state is valid.

        Args:
            from_state: Current session status
            to_state: Desired session status

        Returns:
            bool: True if transition is valid, False otherwise
        """
        return to_state in cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def validate_transition(cls, from_state: SessionStatus, to_state: SessionStatus) -> None:
        """
        Validate status transition and raise exception if invalid.

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        if not cls.can_transition(from_state, to_state):
            raise InvalidStateTransitionError(
                f"Invalid state transition: {from_state} -> {to_state}"
            )

    @classmethod
    def is_terminal(cls, state: SessionStatus) -> bool:
        """Check if state is terminal (no further transitions possible)."""
        return state in cls.TERMINAL_STATES

    @classmethod
    def get_valid_transitions(cls, from_state: SessionStatus) -> Set[SessionStatus]:
        """Get all valid next states from current state."""
        return cls.TRANSITIONS.get(from_state, set())

    @classmethod
    def transition(cls, session: CoordinatorSession, to_state: SessionStatus) -> CoordinatorSession:
        """
        Move a session to a new status after validating the transition.

        Args:
            session: Session to update in place
            to_state: Desired session status

        Returns:
            CoordinatorSession: The same session, updated

        Raises:
            InvalidStateTransitionError: If transition is not valid
        """
        cls.validate_transition(session.status, to_state)
        session.status = to_state
        return session
