"""Process-wide conversation state with whole-snapshot persistence."""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from chatrelay.core.config import settings as app_settings
from chatrelay.core.exceptions import SessionNotFoundError, SettingsValidationError
from chatrelay.core.logging import setup_logger
from chatrelay.models.conversation import (
    DEFAULT_SESSION_TITLE,
    ChatSession,
    ChatSettings,
    Message,
    PersistedState,
)
from chatrelay.repositories import KeyValueStoreProtocol

logger = setup_logger(__name__)

PREVIEW_LENGTH = 50


class ChatStore:
    """
    Owns every session and message plus the settings.

    All mutations go through the methods below, and each one writes the
    `{sessions, settings}` snapshot back to the key-value store. The current
    session pointer is never persisted and is None after :meth:`load`.
    Message-level operations act on the current session (or the session
    named by ``session_id`` where accepted) and are no-ops returning None
    when there is none.
    """

    def __init__(
        self,
        storage: KeyValueStoreProtocol,
        storage_key: str = app_settings.STORAGE_KEY,
    ):
        self._storage = storage
        self.storage_key = storage_key
        self.sessions: List[ChatSession] = []
        self.settings = ChatSettings()
        self.current_session_id: Optional[str] = None

    # Persistence

    def load(self) -> None:
        """Rehydrate sessions and settings from storage."""
        self.current_session_id = None
        raw = self._storage.get(self.storage_key)
        if raw is None:
            logger.info("No persisted chat state found, starting empty")
            self.sessions, self.settings = [], ChatSettings()
            return
        try:
            state = PersistedState.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Discarding unreadable persisted chat state: {e}")
            self.sessions, self.settings = [], ChatSettings()
            return
        self.sessions, self.settings = state.sessions, state.settings
        logger.info(f"Loaded {len(self.sessions)} persisted sessions")

    def _persist(self) -> None:
        state = PersistedState(sessions=self.sessions, settings=self.settings)
        self._storage.set(self.storage_key, state.model_dump_json(by_alias=True))

    # Sessions

    @property
    def current_session(self) -> Optional[ChatSession]:
        if self.current_session_id is None:
            return None
        return self.get_session(self.current_session_id)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def set_current_session(self, session_id: Optional[str]) -> Optional[ChatSession]:
        """Select a session, or clear the selection with None."""
        if session_id is None:
            self.current_session_id = None
            return None
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        self.current_session_id = session.id
        return session

    def create_session(self, title: str = DEFAULT_SESSION_TITLE) -> ChatSession:
        """Create an empty session, make it current and put it first."""
        session = ChatSession(title=title)
        self.sessions.insert(0, session)
        self.current_session_id = session.id
        self._persist()
        logger.info(f"Created new session: {session.id}")
        return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session; clears the current pointer if it pointed there."""
        before = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        if len(self.sessions) == before:
            return False
        if self.current_session_id == session_id:
            self.current_session_id = None
        self._persist()
        logger.info(f"Deleted session: {session_id}")
        return True

    def rename_session(self, session_id: str, title: str) -> ChatSession:
        session = self.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        session.title = title
        session.touch()
        self._persist()
        return session

    def search_sessions(self, query: str) -> List[ChatSession]:
        """Sessions whose title contains the query, case-insensitively."""
        needle = query.lower()
        return [s for s in self.sessions if needle in s.title.lower()]

    @staticmethod
    def session_preview(session: ChatSession) -> str:
        if not session.messages:
            return "No messages"
        content = session.messages[-1].content
        if len(content) > PREVIEW_LENGTH:
            return content[:PREVIEW_LENGTH] + "..."
        return content

    # Messages

    def _target(self, session_id: Optional[str]) -> Optional[ChatSession]:
        if session_id is None:
            return self.current_session
        return self.get_session(session_id)

    def add_message(
        self, message: Message, session_id: Optional[str] = None
    ) -> Optional[Message]:
        session = self._target(session_id)
        if session is None:
            return None
        if message.is_streaming:
            self._clear_streaming(session)
        session.messages.append(message)
        session.touch()
        self._persist()
        return message

    def update_message(
        self,
        message_id: str,
        *,
        content: Optional[str] = None,
        is_streaming: Optional[bool] = None,
        session_id: Optional[str] = None,
    ) -> Optional[Message]:
        """Mutate a message in place (current session unless session_id is given)."""
        session = self._target(session_id)
        if session is None:
            return None
        _, message = session.find_message(message_id)
        if message is None:
            return None
        if content is not None:
            message.content = content
        if is_streaming is not None:
            if is_streaming:
                self._clear_streaming(session)
            message.is_streaming = is_streaming
        session.touch()
        self._persist()
        return message

    def remove_message(self, message_id: str) -> bool:
        session = self.current_session
        if session is None:
            return False
        index, _ = session.find_message(message_id)
        if index < 0:
            return False
        del session.messages[index]
        session.touch()
        self._persist()
        return True

    def clear_messages(self) -> None:
        session = self.current_session
        if session is None:
            return
        session.messages = []
        session.touch()
        self._persist()

    def truncate_messages(self, index: int) -> None:
        """Drop the message at index and everything after it."""
        session = self.current_session
        if session is None:
            return
        session.messages = session.messages[:index]
        session.touch()
        self._persist()

    # Streaming

    def start_streaming(
        self, message_id: str, session_id: Optional[str] = None
    ) -> Optional[Message]:
        return self.update_message(message_id, is_streaming=True, session_id=session_id)

    def append_to_message(
        self, message_id: str, text: str, session_id: Optional[str] = None
    ) -> Optional[Message]:
        """
        Append streamed text to a message.

        Called once per delta, and each call rewrites the whole snapshot
        synchronously on the calling thread. With the SQL store that is one
        commit per delta.
        """
        session = self._target(session_id)
        if session is None:
            return None
        _, message = session.find_message(message_id)
        if message is None:
            return None
        return self.update_message(
            message_id, content=message.content + text, session_id=session.id
        )

    def stop_streaming(
        self, message_id: str, session_id: Optional[str] = None
    ) -> Optional[Message]:
        return self.update_message(message_id, is_streaming=False, session_id=session_id)

    @staticmethod
    def _clear_streaming(session: ChatSession) -> None:
        for message in session.messages:
            message.is_streaming = False

    # Settings

    def update_settings(self, **changes: Any) -> ChatSettings:
        """
        Apply a partial settings update.

        Raises:
            SettingsValidationError: If a value is outside its allowed range;
            the current settings are left untouched
        """
        unknown = set(changes) - set(ChatSettings.model_fields)
        if unknown:
            raise SettingsValidationError(
                f"Unknown settings: {', '.join(sorted(unknown))}"
            )
        merged: Dict[str, Any] = {**self.settings.model_dump(), **changes}
        try:
            self.settings = ChatSettings.model_validate(merged)
        except ValidationError as e:
            raise SettingsValidationError(
                "Invalid settings", details={"errors": e.errors()}
            ) from e
        self._persist()
        return self.settings
