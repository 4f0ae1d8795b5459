"""
Per-chat session registry for the Church Bot.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

from .models import ActiveQuiz, BattleSession, BestOfTen, ChatSession, PendingDifficulty


class SessionState(Enum):
    """Enumeration of the session variants a chat can be in."""
    NONE = "none"
    PENDING_DIFFICULTY = "pending_difficulty"
    ACTIVE_QUIZ = "active_quiz"
    BEST_OF_TEN = "best_of_ten"
    BATTLE = "battle"


_STATE_BY_TYPE = {
    PendingDifficulty: SessionState.PENDING_DIFFICULTY,
    ActiveQuiz: SessionState.ACTIVE_QUIZ,
    BestOfTen: SessionState.BEST_OF_TEN,
    BattleSession: SessionState.BATTLE,
}


class SessionRegistry:
    """
    Tracks the single conversational session of each chat.

    Each chat id holds at most one session; setting a session replaces
    whatever was there. Sessions never expire unless a timeout is
    configured, in which case stale sessions are dropped on lookup.
    """

    def __init__(self, session_timeout_minutes: Optional[int] = None):
        self.logger = logging.getLogger(__name__)
        self._sessions: Dict[str, ChatSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._timeout = (
            timedelta(minutes=session_timeout_minutes) if session_timeout_minutes else None
        )

    def get(self, chat_id: str) -> Optional[ChatSession]:
        session = self._sessions.get(chat_id)
        if session is not None and self._is_expired(session):
            self.logger.info(f"Session {type(session).__name__} in chat {chat_id} expired")
            del self._sessions[chat_id]
            return None
        return session

    def set(self, chat_id: str, session: ChatSession) -> None:
        previous = self._sessions.get(chat_id)
        self._sessions[chat_id] = session
        if previous is not None and previous is not session:
            self.logger.info(
                f"Chat {chat_id}: {type(previous).__name__} replaced by {type(session).__name__}"
            )
        else:
            self.logger.debug(f"Chat {chat_id}: session {type(session).__name__}")

    def clear(self, chat_id: str) -> None:
        session = self._sessions.pop(chat_id, None)
        if session is not None:
            self.logger.debug(f"Chat {chat_id}: {type(session).__name__} cleared")

    def state(self, chat_id: str) -> SessionState:
        session = self.get(chat_id)
        if session is None:
            return SessionState.NONE
        return _STATE_BY_TYPE[type(session)]

    @asynccontextmanager
    async def lock(self, chat_id: str):
        """
        Serialize message handling for a chat.

        The chat's lock lives only while a message holds or awaits it.
        """
        chat_lock = self._locks.get(chat_id)
        if chat_lock is None:
            chat_lock = self._locks[chat_id] = asyncio.Lock()
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with chat_lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if not self._lock_users[chat_id]:
                del self._lock_users[chat_id]
                del self._locks[chat_id]

    def lock_count(self) -> int:
        return len(self._locks)

    def active_count(self) -> int:
        return len(self._sessions)

    def _is_expired(self, session: ChatSession) -> bool:
        if self._timeout is None:
            return False
        return datetime.now() - session.started_at > self._timeout

    def cleanup_expired(self) -> int:
        """
        Drop every expired session.

        Returns:
            Number of sessions removed
        """
        expired = [chat_id for chat_id, session in self._sessions.items() if self._is_expired(session)]
        for chat_id in expired:
            del self._sessions[chat_id]
        if expired:
            self.logger.info(f"Cleaned up {len(expired)} expired sessions")
        return len(expired)
