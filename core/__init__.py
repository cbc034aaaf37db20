"""
Core Module - Foundation components for Static Chatter
======================================================

This module provides the foundational components including:
- Configuration management and the static realm bindings
- Logging setup
- Exception handling
- Observability events
- Rolling-window rate limiting
"""

from .config import Config, load_config, save_config, STATIC_REALM_ID
from .events import Event, EventKind, EventLog, EventSink
from .exceptions import (
    ChatterError,
    ConfigError,
    SessionCapReached,
    SessionExpired,
    RealmMismatch,
    UtteranceTooLong,
    RateLimitExceeded,
    IntentUnknown,
)
from .logging import setup_logging, get_logger
from .rate_limiter import RateLimitResult, RollingWindow

__all__ = [
    "Config",
    "load_config",
    "save_config",
    "STATIC_REALM_ID",
    "Event",
    "EventKind",
    "EventLog",
    "EventSink",
    "ChatterError",
    "ConfigError",
    "SessionCapReached",
    "SessionExpired",
    "RealmMismatch",
    "UtteranceTooLong",
    "RateLimitExceeded",
    "IntentUnknown",
    "setup_logging",
    "get_logger",
    "RateLimitResult",
    "RollingWindow",
]
