"""
Chat Service - Utterance submission and session orchestration
=============================================================

This module ties the session store and the intent matcher together
into the in-process chat contract: open a session, send utterances to
it, close it, and list the intents the bot knows.
"""

import threading
from dataclasses import replace
from typing import Dict, Any, List, Optional

from core.config import Config, MAX_UTTERANCE_LEN, MAX_REPLY_LEN
from core.events import EventKind, EventLog, EventSink
from core.exceptions import RateLimitExceeded, UtteranceTooLong
from core.logging import get_logger, set_log_context, clear_log_context
from rules.engine import IntentMatch, IntentMatcher, IndexSource
from .session_store import Clock, SessionStore

logger = get_logger("services.chat")


class AtomicCounter:
    """Lock-guarded integer counter."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def truncate_reply(reply: str, max_length: int) -> str:
    """Cut a reply down to at most ``max_length`` characters."""
    if len(reply) <= max_length:
        return reply
    return reply[:max_length]


class ChatService:
    """
    Rule-based chat responder.

    Every submission is length-checked, resolved against the session
    store, rate-checked, matched, recorded and answered, in that order.
    Nothing is mutated when any of the checks or the match fail.

    Example:
        chat = ChatService.from_config(load_config())
        session_id = chat.open_session()
        print(chat.send_utterance(session_id, "hello"))
        chat.close_session(session_id)
    """

    def __init__(
        self,
        store: SessionStore,
        matcher: IntentMatcher,
        events: Optional[EventSink] = None,
        max_utterance_length: int = MAX_UTTERANCE_LEN,
        max_reply_length: int = MAX_REPLY_LEN,
        counter: Optional[AtomicCounter] = None,
    ):
        """
        Initialize chat service.

        Args:
            store: Session store
            matcher: Intent matcher holding the reply rules
            events: Event sink; defaults to the store's sink
            max_utterance_length: Longest accepted utterance
            max_reply_length: Replies are truncated to this length
            counter: Processed-utterance counter, shareable between services
        """
        self.store = store
        self.matcher = matcher
        self.events = events if events is not None else store.events
        self.max_utterance_length = max_utterance_length
        self.max_reply_length = max_reply_length
        self.counter = counter or AtomicCounter()

    @classmethod
    def from_config(
        cls,
        config: Config,
        events: Optional[EventSink] = None,
        index_source: Optional[IndexSource] = None,
        clock: Optional[Clock] = None,
    ) -> "ChatService":
        """
        Build a service from configuration.

        Rules come from ``config.rules.rules_file`` when set, otherwise
        from the built-in table.

        Raises:
            ConfigError: If the rules file cannot be loaded
            IntentUnknown: If a fallback rule is required but not last
        """
        events = events if events is not None else EventLog()

        if config.rules.rules_file:
            matcher = IntentMatcher.from_file(config.rules.rules_file, index_source=index_source)
        else:
            matcher = IntentMatcher.with_defaults(index_source=index_source)

        if config.rules.require_fallback:
            matcher.validate()

        store = SessionStore.from_config(config, events=events, clock=clock)

        logger.info(
            f"Chat service ready: {len(matcher)} rules, "
            f"{len(matcher.list_intents())} intents, realm {config.realm.realm_id[:10]}..."
        )

        return cls(
            store=store,
            matcher=matcher,
            events=events,
            max_utterance_length=config.limits.max_utterance_length,
            max_reply_length=config.limits.max_reply_length,
        )

    def open_session(self) -> str:
        """Open a session; see ``SessionStore.open_session``."""
        return self.store.open_session()

    def close_session(self, session_id: str) -> None:
        """Close a session. Closing twice, or an unknown id, is a no-op."""
        self.store.close_session(session_id)

    def list_intents(self) -> List[str]:
        """Unique intent ids in first-registration order."""
        return self.matcher.list_intents()

    def send_utterance(self, session_id: str, utterance: Optional[str]) -> str:
        """
        Submit one utterance to a session and get the bot's reply.

        Args:
            session_id: Live session id
            utterance: User text, at most ``max_utterance_length`` characters

        Returns:
            The reply text

        Raises:
            UtteranceTooLong: If the utterance is missing or too long
            SessionExpired: If the session is unknown, closed or idle past TTL
            RealmMismatch: If the store's realm is misconfigured
            RateLimitExceeded: If the session used up its rolling window
            IntentUnknown: If no rule matches; the session is left untouched
        """
        return self.submit(session_id, utterance).response

    def submit(self, session_id: str, utterance: Optional[str]) -> IntentMatch:
        """
        Like ``send_utterance``, but return the whole match.

        The match's ``response`` is the reply as sent, already truncated.
        """
        if utterance is None or len(utterance) > self.max_utterance_length:
            raise UtteranceTooLong(
                "Utterance is missing or too long",
                {
                    "length": None if utterance is None else len(utterance),
                    "max_length": self.max_utterance_length,
                },
            )

        session = self.store.resolve_session(session_id)

        set_log_context(session_id=session_id)
        try:
            with session.lock:
                # The session may have been closed or gone idle while we waited.
                self.store.ensure_live(session)

                rate = self.store.check_rate(session)
                if not rate.allowed:
                    self.events.emit(
                        EventKind.RATE_LIMIT_HIT,
                        session_id,
                        retry_after=rate.retry_after,
                    )
                    logger.warning(f"Rate limit hit, retry after {rate.retry_after:.1f}s")
                    raise RateLimitExceeded(
                        "Too many utterances in the current window",
                        retry_after=rate.retry_after,
                        details={"session_id": session_id, "limit": self.store.rate_limit},
                    )

                # Nothing is recorded until a rule has matched.
                match = self.matcher.match(utterance)
                reply = truncate_reply(match.response, self.max_reply_length)

                self.store.record_utterance(session)
                self.store.append_history(session, f"user: {utterance}")
                self.events.emit(EventKind.UTTERANCE_RECEIVED, session_id, length=len(utterance))

                self.store.append_history(session, f"static: {reply}")
                processed = self.counter.increment()
                self.events.emit(EventKind.REPLY_EMITTED, session_id, length=len(reply))
                self.events.emit(EventKind.INTENT_MATCHED, session_id, intent_id=match.intent_id)

            logger.debug(f"Matched '{match.intent_id}' (processed {processed})")
            return replace(match, response=reply)
        finally:
            clear_log_context()

    def get_history(self, session_id: str) -> List[str]:
        """
        Get a copy of a live session's history.

        Raises:
            SessionExpired: If the session is unknown, closed or expired
        """
        session = self.store.resolve_session(session_id)
        with session.lock:
            return list(session.history)

    @property
    def processed_count(self) -> int:
        """Utterances answered since startup."""
        return self.counter.value

    def stats(self) -> Dict[str, Any]:
        """Summary of live sessions, processed utterances and event counts."""
        stats: Dict[str, Any] = {
            "live_sessions": self.store.live_count(),
            "stored_sessions": len(self.store),
            "processed_utterances": self.processed_count,
            "intents": len(self.matcher.list_intents()),
        }
        if isinstance(self.events, EventLog):
            stats["events"] = self.events.counts()
        return stats
