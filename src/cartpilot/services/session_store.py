"""File-backed session persistence with atomic writes."""
import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Union
from cartpilot.config import get_settings
from cartpilot.core.exceptions import SessionPersistenceError, SessionValidationError
from cartpilot.observability import metrics
from cartpilot.schemas.session import CoordinatorSession
from cartpilot.services.serialization import deserialize_session, serialize_session
from cartpilot.services.state_machine import SessionStateMachine

logger = logging.getLogger(__name__)

SESSION_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"


class SessionStore:
    """
    Stores sessions as ``<session_dir>/<session_id>.json``.

    Writes go to a ``.tmp`` staging file first and are renamed into
    place, so a reader never sees a half-written session.
    """

    def __init__(self, session_dir: Optional[Union[str, Path]] = None):
        """
        Initialize session store.

        Args:
            session_dir: Directory holding session files, defaults to SESSION_DIR
        """
        self.session_dir = Path(session_dir or get_settings().SESSION_DIR)

    def path_for(self, session_id: str) -> Path:
        return self.session_dir / f"{session_id}{SESSION_SUFFIX}"

    def save(self, session: CoordinatorSession) -> Path:
        """
        Save a session atomically.

        Args:
            session: Session to save

        Returns:
            Path: Final path of the session file

        Raises:
            SessionPersistenceError: If the session cannot be written
        """
        path = self.path_for(session.session_id)
        temp_path = path.with_name(path.name + TEMP_SUFFIX)

        # Worker reports keep unknown extra fields, which may not be JSON-safe
        try:
            content = json.dumps(serialize_session(session), indent=2)
        except (TypeError, ValueError) as e:
            raise SessionPersistenceError(
                f"Failed to serialize session {session.session_id}: {e}"
            ) from e

        try:
            self.session_dir.mkdir(parents=True, exist_ok=True)
            temp_path.write_text(content, encoding="utf-8")
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise SessionPersistenceError(
                f"Failed to save session {session.session_id}: {e}"
            ) from e

        logger.debug(f"Saved session {session.session_id} to {path}")
        return path

    def load(self, session_id: str) -> Optional[CoordinatorSession]:
        """
        Load a session.

        Args:
            session_id: Session to load

        Returns:
            Optional[CoordinatorSession]: The session, or None if no file exists

        Raises:
            SessionPersistenceError: If the file is unreadable, corrupt or invalid
        """
        path = self.path_for(session_id)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise SessionPersistenceError(f"Failed to read session {session_id}: {e}") from e

        try:
            return deserialize_session(data)
        except SessionValidationError as e:
            raise SessionPersistenceError(f"Session {session_id} is invalid: {e}") from e

    def list_sessions(self) -> List[str]:
        """
        List stored session ids, most recently modified first.

        Returns:
            List[str]: Session ids, empty if the directory does not exist
        """
        if not self.session_dir.is_dir():
            return []

        files = [p for p in self.session_dir.glob(f"*{SESSION_SUFFIX}") if p.is_file()]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return [p.name[:-len(SESSION_SUFFIX)] for p in files]

    def delete(self, session_id: str) -> bool:
        """
        Delete a stored session.

        Returns:
            bool: True if a file was deleted, False if none existed

        Raises:
            SessionPersistenceError: If the file exists but cannot be removed
        """
        path = self.path_for(session_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise SessionPersistenceError(f"Failed to delete session {session_id}: {e}") from e
        return True

    def cleanup_old_sessions(self, max_age: Optional[timedelta] = None) -> int:
        """
        Delete terminal sessions older than max_age.

        Age is measured from the end time, or the start time when the
        session never ended. Sessions that can still run are kept whatever
        their age. Unreadable files are skipped.

        Args:
            max_age: Maximum age, defaults to SESSION_RETENTION_DAYS

        Returns:
            int: Number of sessions deleted
        """
        if max_age is None:
            max_age = timedelta(days=get_settings().SESSION_RETENTION_DAYS)

        now = datetime.now(timezone.utc)
        deleted = 0

        for session_id in self.list_sessions():
            try:
                session = self.load(session_id)
            except SessionPersistenceError as e:
                logger.warning(f"Skipping session {session_id} during cleanup: {e}")
                continue

            if session is None or not SessionStateMachine.is_terminal(session.status):
                continue

            reference = session.end_time or session.start_time
            if reference.tzinfo is None:
                reference = reference.replace(tzinfo=timezone.utc)

            if now - reference > max_age and self.delete(session_id):
                deleted += 1

        if deleted:
            logger.info(f"Cleaned up {deleted} old session(s) from {self.session_dir}")
        metrics.record_sessions_cleaned_up(deleted)
        return deleted
