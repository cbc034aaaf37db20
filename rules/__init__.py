"""
Rules Module - Ordered intent matching
======================================

This module provides the reply rules and the matcher that resolves an
utterance to exactly one of them:
- Full-string regex patterns, case-insensitive by default
- First match in registration order wins
- Random choice among a rule's canned responses
- YAML rule files
"""

from .engine import IntentMatcher, ReplyRule, IntentMatch, FALLBACK_INTENT

__all__ = [
    "IntentMatcher",
    "ReplyRule",
    "IntentMatch",
    "FALLBACK_INTENT",
]
