import enum
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.services.catalog import CURRENT_PRODUCT_LABEL, CatalogScope

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = timedelta(minutes=30)
MAX_HISTORY = 10
CONTEXT_MESSAGES = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    product_detected: str | CatalogScope | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = field(default_factory=_utcnow)


@dataclass
class ConversationSession:
    session_id: str
    created_at: datetime
    last_activity: datetime
    history: list[Message] = field(default_factory=list)
    last_product_mentioned: str | None = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)


class ConversationStore:
    """
    Per-session message history and the product currently being discussed.

    Each session is mutated under its own lock; the session map itself is
    guarded by a store-wide lock held only for lookups and eviction.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        timeout: timedelta = SESSION_TIMEOUT,
        max_history: int = MAX_HISTORY,
        context_messages: int = CONTEXT_MESSAGES,
    ):
        self.clock = clock
        self.timeout = timeout
        self.max_history = max_history
        self.context_messages = context_messages
        self._sessions: dict[str, ConversationSession] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return f"session_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def _get_or_create(self, session_id: str) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                now = self.clock()
                session = ConversationSession(session_id=session_id, created_at=now, last_activity=now)
                self._sessions[session_id] = session
            return session

    @contextmanager
    def _locked(self, session_id: str):
        # Re-check after locking: eviction may have dropped the session in between.
        while True:
            session = self._get_or_create(session_id)
            with session.lock:
                if self._sessions.get(session_id) is session:
                    yield session
                    return

    def get_context(self, session_id: str) -> str:
        """
        Render the current product and the most recent messages.

        Unknown sessions yield an empty string and are not created.
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return ""

        with session.lock:
            session.last_activity = self.clock()
            recent = session.history[-self.context_messages:]
            last_product = session.last_product_mentioned

        lines = []
        if last_product:
            lines.append(f"{CURRENT_PRODUCT_LABEL} {last_product}")
        if recent:
            lines.append("Percakapan sebelumnya:")
            for message in recent:
                role = "User" if message.role is Role.USER else "Assistant"
                lines.append(f"{role}: {message.content}")
        return "\n".join(lines)

    def record(self, session_id: str, message: Message) -> None:
        with self._locked(session_id) as session:
            session.history.append(message)
            session.last_activity = self.clock()

            if message.product_detected is CatalogScope.ALL_PRODUCTS:
                logger.info("Clearing product context for session %s after brand-wide question", session_id)
                session.last_product_mentioned = None
            elif message.product_detected:
                session.last_product_mentioned = message.product_detected

            if len(session.history) > self.max_history:
                del session.history[: -self.max_history]

    def evict_expired(self) -> int:
        """Drop sessions idle for longer than the timeout; returns how many were removed."""
        now = self.clock()
        removed = 0
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if now - session.last_activity <= self.timeout:
                    continue
                # A session being written to right now is not idle.
                if not session.lock.acquire(blocking=False):
                    continue
                try:
                    del self._sessions[session_id]
                    removed += 1
                finally:
                    session.lock.release()
        if removed:
            logger.info("Evicted %d expired sessions", removed)
        return removed

    def history(self, session_id: str) -> list[Message]:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return []
        with session.lock:
            return list(session.history)

    def last_product(self, session_id: str) -> str | None:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            return None
        with session.lock:
            return session.last_product_mentioned

    def stats(self) -> dict[str, int]:
        with self._lock:
            sessions = list(self._sessions.values())
        return {
            "active_sessions": len(sessions),
            "total_messages": sum(len(s.history) for s in sessions),
        }
