"""
Session Store - Session lifecycle, expiry and rate accounting
=============================================================

This module owns the set of active chat sessions. It enforces the realm
session cap, treats sessions idle past their TTL as gone, and keeps each
session's rolling-window utterance count and append-only history.

Sessions expire lazily: an idle record stays in memory until a lookup
rejects it or the store purges it, but it is never served once its TTL
has lapsed.
"""

import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from core.config import (
    Config,
    STATIC_REALM_ID,
    MAX_SESSIONS_PER_REALM,
    SESSION_TTL_SECONDS,
    RATE_LIMIT_UTTERANCES_PER_MIN,
    RATE_WINDOW_SECONDS,
)
from core.events import EventKind, EventLog, EventSink
from core.exceptions import RealmMismatch, SessionCapReached, SessionExpired
from core.logging import get_logger
from core.rate_limiter import RateLimitResult, RollingWindow

logger = get_logger("services.session_store")

Clock = Callable[[], float]


@dataclass
class Session:
    """
    One ongoing conversation.

    Attributes:
        id (str): Opaque unique token
        realm_id (str): Realm the session was opened in
        opened_at (float): Clock reading at open
        last_utterance_at (float): Clock reading of the last accepted
            utterance (``opened_at`` until the first one)
        window (RollingWindow): Per-minute utterance counter
        history (list): ``"user: ..."`` / ``"static: ..."`` entries, append only
        context (dict): Free-form per-session data
        lock (RLock): Serialises mutation of this session
        closed (bool): Set under ``lock`` once the session is closed
    """
    id: str
    realm_id: str
    opened_at: float
    last_utterance_at: float
    window: RollingWindow
    history: List[str] = field(default_factory=list)
    context: Dict[str, Any] = field(default_factory=dict)
    lock: Any = field(default_factory=threading.RLock, repr=False, compare=False)
    closed: bool = False

    @property
    def minute_window_start(self) -> float:
        return self.window.start

    @property
    def utterance_count_in_window(self) -> int:
        return self.window.count

    def idle_for(self, now: float) -> float:
        """Seconds since the last accepted utterance."""
        return now - self.last_utterance_at


class SessionStore:
    """
    Thread-safe in-memory session store.

    The session map is guarded by one lock held only for map operations.
    Everything inside a session is guarded by the session's own lock, so
    independent sessions never contend with each other.

    Example:
        store = SessionStore()
        session_id = store.open_session()
        session = store.resolve_session(session_id)
        with session.lock:
            if store.check_rate(session).allowed:
                store.record_utterance(session)
                store.append_history(session, "user: hi")
        store.close_session(session_id)
    """

    def __init__(
        self,
        realm_id: str = STATIC_REALM_ID,
        max_sessions: int = MAX_SESSIONS_PER_REALM,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        rate_limit: int = RATE_LIMIT_UTTERANCES_PER_MIN,
        window_seconds: float = RATE_WINDOW_SECONDS,
        events: Optional[EventSink] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize session store.

        Args:
            realm_id: Realm every session is bound to
            max_sessions: Maximum number of live sessions
            ttl_seconds: Idle time after which a session expires
            rate_limit: Utterances allowed per rolling window
            window_seconds: Rolling window duration
            events: Sink for session events (a private EventLog if omitted)
            clock: Monotonic clock in seconds (``time.monotonic`` if omitted)
        """
        self.realm_id = realm_id
        self.max_sessions = max_sessions
        self.ttl_seconds = ttl_seconds
        self.rate_limit = rate_limit
        self.window_seconds = window_seconds
        self.events = events if events is not None else EventLog()
        self.clock = clock or time.monotonic

        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        # No stored session can have expired before this clock reading.
        self._purge_not_before = float("inf")

    @classmethod
    def from_config(
        cls,
        config: Config,
        events: Optional[EventSink] = None,
        clock: Optional[Clock] = None,
    ) -> "SessionStore":
        """Build a store from the realm and session config sections."""
        return cls(
            realm_id=config.realm.realm_id,
            max_sessions=config.session.max_sessions,
            ttl_seconds=config.session.ttl_seconds,
            rate_limit=config.session.rate_limit_per_window,
            window_seconds=config.session.rate_window_seconds,
            events=events,
            clock=clock,
        )

    def open_session(self) -> str:
        """
        Open a new session in the configured realm.

        Returns:
            The new session id

        Raises:
            SessionCapReached: If the realm already holds the maximum
                number of live sessions
        """
        now = self.clock()

        with self._lock:
            if len(self._sessions) >= self.max_sessions and now > self._purge_not_before:
                self._purge_locked(now)
            if len(self._sessions) >= self.max_sessions:
                logger.warning(f"Session cap reached ({self.max_sessions})")
                raise SessionCapReached(
                    "Realm is at session capacity",
                    {"max_sessions": self.max_sessions},
                )

            session_id = str(uuid.uuid4())
            while session_id in self._sessions:
                session_id = str(uuid.uuid4())

            self._sessions[session_id] = Session(
                id=session_id,
                realm_id=self.realm_id,
                opened_at=now,
                last_utterance_at=now,
                window=RollingWindow(
                    limit=self.rate_limit,
                    window_seconds=self.window_seconds,
                    start=now,
                ),
            )
            self._purge_not_before = min(self._purge_not_before, now + self.ttl_seconds)
            live = len(self._sessions)

        self.events.emit(EventKind.SESSION_OPENED, session_id)
        logger.info(f"Opened session {session_id} ({live} live)")
        return session_id

    def resolve_session(self, session_id: str) -> Session:
        """
        Look up a live session. Lookup alone never refreshes the TTL.

        Args:
            session_id: Session id returned by ``open_session``

        Returns:
            The live Session

        Raises:
            RealmMismatch: If the store is configured for a realm other
                than the static realm
            SessionExpired: If the id is unknown, closed or idle past TTL
        """
        if self.realm_id != STATIC_REALM_ID:
            logger.error(f"Store realm {self.realm_id} does not match the static realm")
            raise RealmMismatch(
                "Configured realm does not match the static realm",
                {"configured": self.realm_id, "expected": STATIC_REALM_ID},
            )

        with self._lock:
            session = self._sessions.get(session_id)

        if session is None:
            raise SessionExpired("Unknown or closed session", {"session_id": session_id})

        self.ensure_live(session)
        return session

    def ensure_live(self, session: Session) -> None:
        """
        Re-check a resolved session, typically once its lock is held.

        Raises:
            SessionExpired: If the session was closed or went idle past TTL
                since it was resolved
        """
        if session.closed:
            raise SessionExpired("Unknown or closed session", {"session_id": session.id})

        if self._is_expired(session, self.clock()):
            logger.debug(f"Session {session.id} idle past TTL")
            raise SessionExpired("Session expired", {"session_id": session.id})

    def check_rate(self, session: Session) -> RateLimitResult:
        """
        Check whether the session may submit one more utterance.

        Nothing is recorded; see ``record_utterance``.
        """
        with session.lock:
            return session.window.check(self.clock())

    def record_utterance(self, session: Session) -> int:
        """
        Account for an accepted utterance.

        Resets the rolling window first if it has elapsed, then counts the
        utterance and refreshes the session's TTL.

        Returns:
            Utterance count in the current window
        """
        with session.lock:
            now = self.clock()
            count = session.window.record(now)
            session.last_utterance_at = now
            return count

    def append_history(self, session: Session, entry: str) -> None:
        """Append one entry to the session's history."""
        with session.lock:
            session.history.append(entry)

    def close_session(self, session_id: str) -> bool:
        """
        Close a session. Unknown ids are ignored.

        Returns:
            True if a session was removed
        """
        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        # Waits for any in-flight submission on this session to finish.
        with session.lock:
            session.closed = True

        self.events.emit(EventKind.SESSION_CLOSED, session_id, utterances=len(session.history) // 2)
        logger.info(f"Closed session {session_id}")
        return True

    def purge_expired(self) -> int:
        """
        Remove sessions idle past their TTL.

        Returns:
            Number of sessions removed
        """
        with self._lock:
            return self._purge_locked(self.clock())

    def live_count(self) -> int:
        """Number of stored sessions that are still within their TTL."""
        now = self.clock()
        with self._lock:
            return sum(1 for s in self._sessions.values() if not self._is_expired(s, now))

    def _purge_locked(self, now: float) -> int:
        expired = [sid for sid, s in self._sessions.items() if self._is_expired(s, now)]
        for sid in expired:
            del self._sessions[sid]

        # last_utterance_at only moves forward, so the oldest remaining
        # activity bounds the next possible expiry from below.
        oldest = min((s.last_utterance_at for s in self._sessions.values()), default=None)
        self._purge_not_before = float("inf") if oldest is None else oldest + self.ttl_seconds

        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def _is_expired(self, session: Session, now: float) -> bool:
        return session.idle_for(now) > self.ttl_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions
