"""Session serialization and schema validation."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from cartpilot.core.exceptions import SessionValidationError
from cartpilot.schemas.session import CoordinatorSession


@dataclass(frozen=True)
class SessionValidationResult:
    """Tagged result of validating serialized session data."""

    valid: bool
    session: Optional[CoordinatorSession] = None
    errors: List[str] = field(default_factory=list)


def _format_errors(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or '<root>'}: {item['msg']}"
        for item in error.errors()
    ]


def serialize_session(session: CoordinatorSession) -> Dict[str, Any]:
    """
    Convert a session to a JSON-safe dict.

    Timestamps become ISO-8601 strings. Absent optional fields are left
    out, so review pack sections that did not run do not appear.
    """
    return session.model_dump(mode="json", exclude_none=True)


def validate_serialized_session(data: Any) -> SessionValidationResult:
    """
    Validate serialized session data without raising.

    Args:
        data: Parsed JSON data

    Returns:
        SessionValidationResult: valid with the session, or invalid with errors
    """
    if not isinstance(data, dict):
        return SessionValidationResult(
            valid=False,
            errors=[f"<root>: expected an object, got {type(data).__name__}"],
        )
    try:
        session = CoordinatorSession.model_validate(data)
    except ValidationError as e:
        return SessionValidationResult(valid=False, errors=_format_errors(e))
    return SessionValidationResult(valid=True, session=session)


def deserialize_session(data: Any) -> CoordinatorSession:
    """
    Rebuild a session from serialized data.

    Raises:
        SessionValidationError: If the data does not match the session schema
    """
    result = validate_serialized_session(data)
    if not result.valid:
        raise SessionValidationError(
            f"Invalid session data: {'; '.join(result.errors)}",
            errors=result.errors,
        )
    return result.session
