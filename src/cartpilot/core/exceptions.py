"""Custom exceptions for CartPilot."""


class CartPilotException(Exception):
    """Base exception for all CartPilot-specific exceptions."""

    pass


class InvalidStateTransitionError(CartPilotException):
    """Raised when attempting an invalid session state transition."""

    pass


class WorkerAlreadyRegisteredError(CartPilotException, ValueError):
    """Raised when registering a worker name that is already taken."""

    pass


class WorkerNotRegisteredError(CartPilotException, KeyError):
    """Raised when referring to a worker that is not in the registry."""

    def __str__(self) -> str:
        # KeyError quotes its argument, keep the plain message
        return str(self.args[0]) if self.args else ""


class WorkerTimeoutError(CartPilotException):
    """Raised when a worker attempt exceeds its timeout."""

    def __init__(self, worker_name: str, timeout_ms: int):
        self.worker_name = worker_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Worker '{worker_name}' timed out after {timeout_ms}ms")


class WorkerFailedError(CartPilotException):
    """Raised when a worker fails without providing an error of its own."""

    pass


class LoginFailedError(CartPilotException):
    """Raised when the login collaborator cannot authenticate the user."""

    pass


class SessionValidationError(CartPilotException):
    """Raised when serialized session data does not match the session schema."""

    def __init__(self, message: str, errors=None):
        self.errors = list(errors or [])
        super().__init__(message)


class SessionPersistenceError(CartPilotException):
    """Raised when a session cannot be saved, loaded or deleted."""

    pass


class SessionNotResumableError(CartPilotException):
    """Raised when asking for the resume point of a session that cannot resume."""

    pass
