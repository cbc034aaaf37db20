"""
Services Module - Session lifecycle and chat orchestration
==========================================================

This module provides the main services:
- Session Store: capacity, TTL expiry, rate accounting, history
- Chat Service: utterance submission against the intent matcher
"""

from .session_store import Session, SessionStore
from .chat import ChatService, AtomicCounter

__all__ = [
    "Session",
    "SessionStore",
    "ChatService",
    "AtomicCounter",
]
