"""
Rules Engine - Intent matching and canned responses
===================================================

This module implements the intent matcher: an ordered list of reply
rules, each a regular expression with a set of candidate responses.
An utterance is trimmed and then tried against the rules in the order
they were registered; the first full-string match wins and one of its
responses is picked at random.

Rule priority is carried as metadata only. Registration order alone
decides which rule wins, so specific rules must be registered before
generic ones and the ``fallback`` rule last.
"""

import re
import random
import yaml
from pathlib import Path
from typing import Optional, List, Dict, Any, Callable, Tuple
from dataclasses import dataclass

from core.exceptions import ConfigError, IntentUnknown
from core.logging import get_logger
from .defaults import DEFAULT_RULES

logger = get_logger("rules.engine")

FALLBACK_INTENT = "fallback"

# Takes the number of candidate responses, returns an index in [0, n).
IndexSource = Callable[[int], int]


def default_index_source() -> IndexSource:
    """Fast non-cryptographic index source, seeded from the OS."""
    return random.Random().randrange


@dataclass(frozen=True)
class ReplyRule:
    """
    A single intent: a pattern and the responses it can produce.

    Attributes:
        intent_id (str): Human-readable intent name
        pattern (re.Pattern): Compiled pattern, matched against the whole
            trimmed utterance
        responses (tuple): Candidate replies, never empty
        priority (int): Informational weight, not used for ordering
        case_sensitive (bool): Whether the pattern was compiled without
            ``re.IGNORECASE``
    """
    intent_id: str
    pattern: "re.Pattern"
    responses: Tuple[str, ...]
    priority: int = 0
    case_sensitive: bool = False

    def __post_init__(self):
        if not self.responses:
            raise ConfigError(f"Rule '{self.intent_id}' has no responses")

    @classmethod
    def build(
        cls,
        intent_id: str,
        pattern: str,
        responses: List[str],
        priority: int = 0,
        case_sensitive: bool = False,
    ) -> "ReplyRule":
        """
        Compile a pattern string into a rule.

        Raises:
            ConfigError: If the pattern is not a valid regular expression
                or there are no responses
        """
        flags = 0 if case_sensitive else re.IGNORECASE
        try:
            compiled = re.compile(pattern, flags | re.DOTALL)
        except re.error as e:
            raise ConfigError(
                f"Invalid pattern for rule '{intent_id}': {e}",
                {"pattern": pattern},
            )
        return cls(
            intent_id=intent_id,
            pattern=compiled,
            responses=tuple(responses),
            priority=priority,
            case_sensitive=case_sensitive,
        )

    def matches(self, text: str) -> bool:
        """Full-string match against already-normalized text."""
        return self.pattern.fullmatch(text) is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert rule to dictionary."""
        data = {
            "intent_id": self.intent_id,
            "pattern": self.pattern.pattern,
            "responses": list(self.responses),
            "priority": self.priority,
        }
        if self.case_sensitive:
            data["case_sensitive"] = True
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReplyRule":
        """Create rule from dictionary."""
        try:
            intent_id = data["intent_id"]
            pattern = data["pattern"]
        except (KeyError, TypeError):
            raise ConfigError("Rule requires 'intent_id' and 'pattern'", {"rule": data})

        responses = data.get("responses") or []
        if isinstance(responses, str):
            responses = [responses]

        return cls.build(
            intent_id=str(intent_id),
            pattern=str(pattern),
            responses=[str(r) for r in responses],
            priority=int(data.get("priority", 0)),
            case_sensitive=bool(data.get("case_sensitive", False)),
        )


@dataclass
class IntentMatch:
    """
    Result of matching an utterance.

    Attributes:
        intent_id (str): Id of the winning rule
        rule (ReplyRule): The winning rule
        response (str): The chosen response
    """
    intent_id: str
    rule: ReplyRule
    response: str


class IntentMatcher:
    """
    Ordered, first-match-wins intent matcher.

    Example:
        matcher = IntentMatcher.with_defaults()
        match = matcher.match("  hello ")
        print(match.intent_id, match.response)
    """

    def __init__(self, index_source: Optional[IndexSource] = None):
        """
        Initialize an empty matcher.

        Args:
            index_source: Callable picking a response index; defaults to a
                private ``random.Random`` instance
        """
        self.rules: List[ReplyRule] = []
        self.index_source = index_source or default_index_source()

    @classmethod
    def with_defaults(cls, index_source: Optional[IndexSource] = None) -> "IntentMatcher":
        """Build a matcher holding the built-in rule table."""
        matcher = cls(index_source=index_source)
        for rule_data in DEFAULT_RULES:
            matcher.register(ReplyRule.from_dict(rule_data))
        return matcher

    @classmethod
    def from_file(cls, path: str, index_source: Optional[IndexSource] = None) -> "IntentMatcher":
        """Build a matcher from a YAML rules file."""
        matcher = cls(index_source=index_source)
        matcher.load_rules(path)
        return matcher

    def register(self, rule: ReplyRule) -> None:
        """
        Append a rule. Order of registration is order of evaluation.

        Args:
            rule: Rule to add
        """
        self.rules.append(rule)
        logger.debug(f"Registered rule '{rule.intent_id}' at position {len(self.rules) - 1}")

    def match(self, utterance: str) -> IntentMatch:
        """
        Resolve an utterance to exactly one rule and response.

        Args:
            utterance: Raw utterance; surrounding whitespace is ignored

        Returns:
            IntentMatch for the first rule whose pattern matches

        Raises:
            IntentUnknown: If no rule matches (no fallback registered)
        """
        text = utterance.strip()

        for rule in self.rules:
            if rule.matches(text):
                return IntentMatch(
                    intent_id=rule.intent_id,
                    rule=rule,
                    response=self._choose_response(rule),
                )

        raise IntentUnknown(
            "No rule matched utterance",
            {"utterance": text[:64], "rules": len(self.rules)},
        )

    def _choose_response(self, rule: ReplyRule) -> str:
        count = len(rule.responses)
        index = self.index_source(count)
        if not 0 <= index < count:
            index %= count
        return rule.responses[index]

    def list_intents(self) -> List[str]:
        """Unique intent ids in first-registration order."""
        return list(dict.fromkeys(rule.intent_id for rule in self.rules))

    def get_rules(self, intent_id: Optional[str] = None) -> List[ReplyRule]:
        """Get all rules, or those for one intent, in evaluation order."""
        if intent_id is None:
            return self.rules.copy()
        return [rule for rule in self.rules if rule.intent_id == intent_id]

    def validate(self) -> None:
        """
        Check the rule table guarantees a match for every input.

        Raises:
            IntentUnknown: If the last rule is not the fallback rule
        """
        if not self.rules or self.rules[-1].intent_id != FALLBACK_INTENT:
            raise IntentUnknown(
                f"The '{FALLBACK_INTENT}' rule must be registered last",
                {"intents": self.list_intents()},
            )

    def load_rules(self, path: str) -> int:
        """
        Append rules from a YAML file holding a top-level ``rules`` list.

        Args:
            path: Rules file path

        Returns:
            Number of rules loaded

        Raises:
            ConfigError: If the file is missing, unparsable or holds an
                invalid rule
        """
        rules_file = Path(path)
        try:
            with open(rules_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse rules file: {e}", {"path": str(rules_file)})
        except IOError as e:
            raise ConfigError(f"Failed to read rules file: {e}", {"path": str(rules_file)})

        entries = data.get("rules") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ConfigError("Rules file must contain a 'rules' list", {"path": str(rules_file)})

        for rule_data in entries:
            self.register(ReplyRule.from_dict(rule_data))

        logger.info(f"Loaded {len(entries)} rules from {rules_file}")
        return len(entries)

    def save_rules(self, path: str) -> Path:
        """
        Save current rules to a YAML file.

        Args:
            path: Destination path

        Returns:
            Path that was written
        """
        rules_file = Path(path)
        rules_file.parent.mkdir(parents=True, exist_ok=True)

        data = {"rules": [rule.to_dict() for rule in self.rules]}
        try:
            with open(rules_file, "w", encoding="utf-8") as f:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        except IOError as e:
            raise ConfigError(f"Failed to save rules file: {e}", {"path": str(rules_file)})

        return rules_file

    def __len__(self) -> int:
        return len(self.rules)
