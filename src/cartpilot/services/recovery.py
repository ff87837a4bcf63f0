"""Recovery rules for interrupted sessions."""
from cartpilot.core.enums import SessionStatus
from cartpilot.core.exceptions import SessionNotResumableError
from cartpilot.schemas.session import CoordinatorSession
from cartpilot.services.state_machine import SessionStateMachine


def can_resume(session: CoordinatorSession) -> bool:
    """
    Check if a session can be resumed.

    A session is resumable unless it reached a terminal status or
    recorded a fatal error.
    """
    if SessionStateMachine.is_terminal(session.status):
        return False
    return not session.has_fatal_error()


def get_resume_point(session: CoordinatorSession) -> SessionStatus:
    """
    Get the status a session should restart from.

    Raises:
        SessionNotResumableError: If the session cannot be resumed
    """
    if not can_resume(session):
        raise SessionNotResumableError(
            f"Session {session.session_id} cannot be resumed (status={session.status})"
        )
    return session.status
