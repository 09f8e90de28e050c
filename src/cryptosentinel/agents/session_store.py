"""
Session storage for research bots.

The HTTP layer keys one ``ResearchBot`` per client session. The store is
injected into the app so a shared backend can replace the in-memory one.
Concurrent requests for the same session are not serialized.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..exceptions import SessionNotFoundError


class SessionStore(ABC):
    """Maps a session id to the bot serving it."""

    @abstractmethod
    def get(self, session_id: str) -> Optional[Any]:
        """Return the session's bot, or None."""

    @abstractmethod
    def create(self, session_id: str, bot: Any) -> Any:
        """Store ``bot`` under ``session_id``, replacing any existing one."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Drop a session. Returns False when it did not exist."""

    def require(self, session_id: str) -> Any:
        bot = self.get(session_id)
        if bot is None:
            raise SessionNotFoundError(session_id)
        return bot

    def get_or_create(self, session_id: str, factory: Callable[[], Any]) -> Any:
        bot = self.get(session_id)
        if bot is None:
            bot = self.create(session_id, factory())
        return bot


class InMemorySessionStore(SessionStore):
    """Process-local dict store."""

    def __init__(self):
        self._sessions: Dict[str, Any] = {}

    def get(self, session_id: str) -> Optional[Any]:
        return self._sessions.get(session_id)

    def create(self, session_id: str, bot: Any) -> Any:
        self._sessions[session_id] = bot
        logger.debug(f"Created session {session_id} ({len(self._sessions)} active)")
        return bot

    def delete(self, session_id: str) -> bool:
        existed = self._sessions.pop(session_id, None) is not None
        if existed:
            logger.debug(f"Deleted session {session_id}")
        return existed

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
