"""
Test Session Store Module
=========================

Unit tests for session lifecycle, expiry and rate accounting.
"""

import threading

import pytest
from pathlib import Path
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.config import Config, STATIC_REALM_ID, MAX_SESSIONS_PER_REALM
from core.events import EventKind
from core.exceptions import RealmMismatch, SessionCapReached, SessionExpired
from core.rate_limiter import RollingWindow
from services.session_store import SessionStore


@pytest.fixture
def store(clock, events):
    return SessionStore(events=events, clock=clock)


class TestOpenSession:
    """Tests for opening sessions."""

    def test_open_binds_static_realm(self, store):
        """New sessions belong to the configured realm."""
        session = store.resolve_session(store.open_session())

        assert session.realm_id == STATIC_REALM_ID
        assert session.history == []
        assert session.context == {}
        assert session.utterance_count_in_window == 0

    def test_ids_unique(self, store):
        """Every open returns a fresh id."""
        ids = {store.open_session() for _ in range(100)}
        assert len(ids) == 100

    def test_emits_opened(self, store, events):
        """Opening emits SESSION_OPENED with the new id."""
        session_id = store.open_session()

        opened = events.events(EventKind.SESSION_OPENED)
        assert [e.session_id for e in opened] == [session_id]

    def test_cap_reached(self, clock, events):
        """Opening beyond the cap fails."""
        store = SessionStore(max_sessions=3, events=events, clock=clock)
        for _ in range(3):
            store.open_session()

        with pytest.raises(SessionCapReached):
            store.open_session()
        assert events.count(EventKind.SESSION_OPENED) == 3

    def test_default_cap(self, clock):
        """The default cap admits exactly MAX_SESSIONS_PER_REALM sessions."""
        store = SessionStore(clock=clock)
        for _ in range(MAX_SESSIONS_PER_REALM):
            store.open_session()

        assert len(store) == MAX_SESSIONS_PER_REALM
        with pytest.raises(SessionCapReached):
            store.open_session()

    def test_expired_sessions_free_capacity(self, clock):
        """Expired sessions do not count against the cap."""
        store = SessionStore(max_sessions=2, ttl_seconds=10, clock=clock)
        store.open_session()
        store.open_session()

        clock.advance(11)
        store.open_session()

        assert len(store) == 1

    def test_full_store_scans_only_when_expiry_possible(self, clock, monkeypatch):
        """Rejected opens skip the expiry scan until a session can have lapsed."""
        store = SessionStore(max_sessions=2, ttl_seconds=10, clock=clock)
        store.open_session()
        clock.advance(5)
        store.open_session()

        scans = []
        purge = store._purge_locked
        monkeypatch.setattr(store, "_purge_locked", lambda now: scans.append(now) or purge(now))

        for _ in range(3):
            with pytest.raises(SessionCapReached):
                store.open_session()
        assert scans == []

        clock.advance(6)
        store.open_session()
        assert len(scans) == 1
        assert len(store) == 2

        with pytest.raises(SessionCapReached):
            store.open_session()
        assert len(scans) == 1

    def test_closed_sessions_free_capacity(self, clock):
        """Closing a session makes room for another."""
        store = SessionStore(max_sessions=1, clock=clock)
        store.close_session(store.open_session())

        store.open_session()


class TestResolveSession:
    """Tests for looking up sessions."""

    def test_unknown_id(self, store):
        """Never-opened ids are expired."""
        with pytest.raises(SessionExpired):
            store.resolve_session("no-such-session")

    def test_ttl_expiry(self, clock):
        """Sessions idle past the TTL are rejected."""
        store = SessionStore(ttl_seconds=3600, clock=clock)
        session_id = store.open_session()

        clock.advance(3600)
        store.resolve_session(session_id)

        clock.advance(0.001)
        with pytest.raises(SessionExpired):
            store.resolve_session(session_id)

    def test_lookup_does_not_refresh_ttl(self, clock):
        """Only a recorded utterance extends the TTL."""
        store = SessionStore(ttl_seconds=100, clock=clock)
        session_id = store.open_session()

        clock.advance(50)
        store.resolve_session(session_id)
        clock.advance(50)
        store.resolve_session(session_id)

        clock.advance(1)
        with pytest.raises(SessionExpired):
            store.resolve_session(session_id)

    def test_utterance_refreshes_ttl(self, clock):
        """Recording an utterance moves last_utterance_at forward."""
        store = SessionStore(ttl_seconds=100, clock=clock)
        session_id = store.open_session()

        clock.advance(90)
        store.record_utterance(store.resolve_session(session_id))
        clock.advance(90)

        assert store.resolve_session(session_id).last_utterance_at == clock.now - 90

    def test_realm_mismatch(self, clock):
        """A store configured for another realm rejects every lookup."""
        store = SessionStore(realm_id="0xdeadbeef", clock=clock)
        session_id = store.open_session()

        with pytest.raises(RealmMismatch):
            store.resolve_session(session_id)

    def test_expired_record_stays_until_purged(self, clock):
        """Expiry is lazy; purge removes the record."""
        store = SessionStore(ttl_seconds=10, clock=clock)
        session_id = store.open_session()
        clock.advance(11)

        assert session_id in store
        assert store.live_count() == 0
        assert store.purge_expired() == 1
        assert session_id not in store


class TestRateAccounting:
    """Tests for the rolling window."""

    def test_record_counts(self, store):
        """Each record increments the window count."""
        session = store.resolve_session(store.open_session())

        for expected in range(1, 4):
            assert store.record_utterance(session) == expected

    def test_window_resets_after_elapsed(self, store, clock):
        """A window that has elapsed resets before counting."""
        session = store.resolve_session(store.open_session())
        for _ in range(5):
            store.record_utterance(session)

        clock.advance(60)
        assert store.record_utterance(session) == 1
        assert session.minute_window_start == clock.now

    def test_check_allows_exactly_limit(self, clock):
        """The limit admits exactly `limit` utterances per window."""
        store = SessionStore(rate_limit=3, clock=clock)
        session = store.resolve_session(store.open_session())

        for _ in range(3):
            assert store.check_rate(session).allowed
            store.record_utterance(session)

        result = store.check_rate(session)
        assert not result.allowed
        assert result.retry_after == pytest.approx(60)

    def test_check_sees_elapsed_window_as_empty(self, clock):
        """After rollover a full window no longer blocks."""
        store = SessionStore(rate_limit=1, clock=clock)
        session = store.resolve_session(store.open_session())
        store.record_utterance(session)

        clock.advance(30)
        assert not store.check_rate(session).allowed
        clock.advance(30)
        assert store.check_rate(session).allowed

    def test_rolling_window_remaining(self):
        """Remaining counts down to zero."""
        window = RollingWindow(limit=2, window_seconds=60, start=0)

        assert window.check(1).remaining == 1
        window.record(1)
        assert window.check(2).remaining == 0
        window.record(2)
        assert not window.check(3).allowed


class TestHistoryAndClose:
    """Tests for history and closing."""

    def test_history_append_only(self, store):
        """Entries are kept in insertion order."""
        session = store.resolve_session(store.open_session())
        for entry in ("a", "b", "c"):
            store.append_history(session, entry)

        assert session.history == ["a", "b", "c"]

    def test_close_idempotent(self, store, events):
        """Closing twice emits one SESSION_CLOSED and never errors."""
        session_id = store.open_session()

        assert store.close_session(session_id) is True
        assert store.close_session(session_id) is False
        assert store.close_session("never-opened") is False
        assert events.count(EventKind.SESSION_CLOSED) == 1

        with pytest.raises(SessionExpired):
            store.resolve_session(session_id)

    def test_close_marks_resolved_session(self, store):
        """A session resolved before closing fails ensure_live afterwards."""
        session_id = store.open_session()
        session = store.resolve_session(session_id)
        store.ensure_live(session)

        store.close_session(session_id)

        assert session.closed is True
        with pytest.raises(SessionExpired):
            store.ensure_live(session)

    def test_concurrent_appends(self, store):
        """Concurrent appends to one session lose nothing."""
        session = store.resolve_session(store.open_session())

        def worker(n):
            for i in range(200):
                store.append_history(session, f"{n}:{i}")
                store.record_utterance(session)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(session.history) == 1600
        assert len(set(session.history)) == 1600
        assert session.utterance_count_in_window == 1600


class TestFromConfig:
    """Tests for building a store from configuration."""

    def test_from_config(self, clock):
        """Session settings come from the config sections."""
        config = Config()
        config.session.max_sessions = 5
        config.session.ttl_seconds = 42
        config.session.rate_limit_per_window = 7

        store = SessionStore.from_config(config, clock=clock)

        assert store.max_sessions == 5
        assert store.ttl_seconds == 42
        assert store.rate_limit == 7
        assert store.realm_id == STATIC_REALM_ID
